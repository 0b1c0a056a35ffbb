"""HTML 解析工具."""

import re

from bs4 import BeautifulSoup, Tag


def html_to_text(html: str) -> str:
    """
    将 HTML 转换为纯文本.

    Args:
        html: HTML 内容

    Returns:
        提取的纯文本内容
    """
    if not html:
        return ""

    # 纯文本直接返回，避免 BeautifulSoup 把 URL 样式的文本当作文件名告警
    if "<" not in html:
        return html.strip()

    soup = BeautifulSoup(html, "lxml")

    # 移除 script 和 style 标签
    for element in soup(["script", "style"]):
        element.decompose()

    text = soup.get_text(separator="\n")

    # 清理多余空白
    lines = [line.strip() for line in text.split("\n")]
    text = "\n".join(line for line in lines if line)

    return text.strip()


def xml_entries(xml: str, tag: str) -> list[Tag]:
    """按标签名取出 XML 文档中的所有元素（忽略命名空间前缀）."""
    if not xml:
        return []
    soup = BeautifulSoup(xml, "lxml-xml")
    return list(soup.find_all(tag))


def collapse_whitespace(text: str) -> str:
    """把连续空白压成单个空格."""
    return re.sub(r"\s+", " ", text).strip()
