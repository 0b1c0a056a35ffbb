"""网络请求、签名与正文提取."""

from datacollector.fetcher.extractor import ArticleResult, FullTextExtractor
from datacollector.fetcher.http import HttpFetcher
from datacollector.fetcher.signing import WbiSigner, build_sapisid_hash, enc_wbi

__all__ = [
    "ArticleResult",
    "FullTextExtractor",
    "HttpFetcher",
    "WbiSigner",
    "build_sapisid_hash",
    "enc_wbi",
]
