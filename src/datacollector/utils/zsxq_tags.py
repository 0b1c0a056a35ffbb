"""知识星球 <e> 内联标签解析.

帖子正文中夹带形如 ``<e type="web" href="..." title="..." />`` 的标签，
属性值经过百分号编码。这里提供两种渲染方式：

- ``to_markdown``：落盘用，粗体、链接、图片转为 Markdown；
- ``to_plain_text``：标题和搜索用，只保留可读文本。

历史数据里存在被截断的标签（标题过长时在标签中间被截断），
解析时会尽量从残片里取回 title / href，取不到就丢弃。
"""

import re
from typing import Literal
from urllib.parse import unquote

Mode = Literal["markdown", "plain"]

# 匹配顺序：
# 1. ![alt](<e type="web" .../>)  图片语法里嵌套标签
# 2. [text](<e type="web" .../>)  链接语法里嵌套标签
# 3. [<e type="X" .../>](url)     标签作为链接文字
# 4. <e type="X" .../>            完整标签
# 5. <e ...                       截断的标签残片（到行尾）
TAG_PATTERN = re.compile(
    r'!\[(?P<img_alt>[^\]]*)\]\(\s*<e\s+type="web"\s+(?P<img_attrs>[^/\n]*?)/>\s*\)'
    r'|\[(?P<link_text>[^\]]+)\]\(\s*<e\s+type="web"\s+(?P<link_attrs>[^/\n]*?)/>\s*\)'
    r'|\[<e\s+type="(?P<label_type>\w+)"\s+(?P<label_attrs>[^/\n]*?)/>\s*\]\((?P<label_url>[^)]+)\)'
    r'|<e\s+type="(?P<tag_type>\w+)"\s+(?P<tag_attrs>[^/\n]*?)/?>'
    r"|(?P<broken><e\s[^\n]*)"
)
ATTR_PATTERN = re.compile(r'(\w+)="([^"]*)"')
PARTIAL_TITLE = re.compile(r'title="([^"]*)')
PARTIAL_HREF = re.compile(r'href="([^"]*)')
IMAGE_URL = re.compile(r"\.(?:jpe?g|png|gif|webp|bmp)(?:$|[?#])", re.IGNORECASE)
BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")

DEFAULT_IMAGE_ALT = "图片"
MAX_TRIM = 8


def parse_attrs(attr_str: str) -> dict[str, str]:
    """解析 key="value" 形式的属性串."""
    return dict(ATTR_PATTERN.findall(attr_str))


def _strict_unquote(value: str) -> str:
    if BAD_ESCAPE.search(value):
        msg = f"不完整的百分号转义: {value!r}"
        raise ValueError(msg)
    return unquote(value, errors="strict")


def safe_decode(value: str) -> str:
    """百分号解码，失败时从尾部逐字裁剪（最多 8 个字符）后重试.

    截断的标题常在转义序列中间断开，比如 ``%E4%BD``。
    全部失败时原样返回。
    """
    try:
        return _strict_unquote(value)
    except ValueError:
        pass
    for end in range(len(value) - 1, max(0, len(value) - MAX_TRIM) - 1, -1):
        try:
            return _strict_unquote(value[:end])
        except ValueError:
            continue
    return value


def is_image_url(url: str) -> bool:
    """URL 是否指向常见图片格式."""
    return bool(IMAGE_URL.search(url))


def _render_web(label: str, href: str, mode: Mode) -> str:
    if mode == "plain":
        return label or href
    if is_image_url(href):
        return f"![{label or DEFAULT_IMAGE_ALT}]({href})"
    return f"[{label or href}]({href})"


def _render_tag(tag_type: str, attrs: dict[str, str], mode: Mode) -> str:
    title = safe_decode(attrs.get("title", ""))
    if tag_type == "text_bold":
        if mode == "plain" or not title:
            return title
        return f"**{title}**"
    if tag_type == "web":
        href = safe_decode(attrs.get("href", ""))
        return _render_web(title, href, mode)
    # hashtag / mention / 未知类型：只保留文字
    return title


def _render_broken(fragment: str) -> str:
    title = PARTIAL_TITLE.search(fragment)
    if title:
        return safe_decode(title.group(1))
    href = PARTIAL_HREF.search(fragment)
    if href:
        return safe_decode(href.group(1))
    return ""


def _render_match(match: re.Match[str], mode: Mode) -> str:
    groups = match.groupdict()

    if groups["img_attrs"] is not None:
        src = safe_decode(parse_attrs(groups["img_attrs"]).get("href", ""))
        alt = groups["img_alt"]
        if mode == "plain":
            return alt
        return f"![{alt or DEFAULT_IMAGE_ALT}]({src})"

    if groups["link_attrs"] is not None:
        href = safe_decode(parse_attrs(groups["link_attrs"]).get("href", ""))
        text = groups["link_text"]
        if mode == "plain":
            return text
        return f"[{text}]({href})"

    if groups["label_attrs"] is not None:
        attrs = parse_attrs(groups["label_attrs"])
        label = safe_decode(attrs.get("title") or attrs.get("href", ""))
        return _render_web(label, groups["label_url"], mode)

    if groups["tag_type"] is not None:
        return _render_tag(groups["tag_type"], parse_attrs(groups["tag_attrs"]), mode)

    return _render_broken(groups["broken"])


def render(text: str, mode: Mode = "markdown") -> str:
    """把文本中的所有 <e> 标签渲染为指定格式."""
    if not text or "<e" not in text:
        return text
    return TAG_PATTERN.sub(lambda m: _render_match(m, mode), text)


def to_markdown(text: str) -> str:
    """<e> 标签转 Markdown."""
    return render(text, "markdown")


def to_plain_text(text: str) -> str:
    """<e> 标签转纯文本."""
    return render(text, "plain")


def has_tag_fragment(line: str) -> bool:
    """行内是否含有 <e 标签（含转义过的残片）."""
    return bool(re.search(r"<e\s", line, re.IGNORECASE))


def extract_title(text: str, min_length: int = 4) -> str:
    """从纯文本中提取标题.

    取第一条长度不少于 ``min_length`` 的行；都太短时取最长的非空行。
    """
    lines = [line.strip() for line in text.split("\n")]
    for line in lines:
        if len(line) >= min_length:
            return line
    non_empty = [line for line in lines if line]
    if not non_empty:
        return ""
    return max(non_empty, key=len)
