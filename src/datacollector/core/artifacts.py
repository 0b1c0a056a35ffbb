"""Markdown 文件：文件名、frontmatter、标题同步、索引."""

import re
from collections import defaultdict

from datacollector.collectors.base import CollectedItem
from datacollector.utils.dates import date_part, now_iso, utc_now

FILENAME_UNSAFE = re.compile(r'[/\\:*?"<>|]')
FRONTMATTER = re.compile(r"^(---\n.*?\n---\n)(.*)$", re.DOTALL)
FIRST_HEADING = re.compile(r"^#[^\n]*\n*", re.MULTILINE)
MAX_NAME_LENGTH = 80
INDEX_FILENAME = "_index.md"


def sanitize_filename(name: str) -> str:
    """去掉文件名中的非法字符，空白换成下划线，截断到 80 字符."""
    name = FILENAME_UNSAFE.sub("_", name)
    name = re.sub(r"\s+", "_", name)
    return name[:MAX_NAME_LENGTH]


def build_filename(item: CollectedItem, suffix: str | None = None) -> str:
    """``日期_作者_标题.md``，重名时追加后缀."""
    stem = "_".join(
        [
            date_part(item.published_at),
            sanitize_filename(item.author),
            sanitize_filename(item.title),
        ]
    )
    if suffix:
        stem = f"{stem}_{sanitize_filename(suffix)}"
    return f"{stem}.md"


def escape_title(title: str) -> str:
    """frontmatter 中的标题：转义双引号."""
    return title.replace('"', '\\"')


def render_markdown(item: CollectedItem, body: str, collected_at: str | None = None) -> str:
    """生成带 frontmatter 的 Markdown 文本.

    ``body`` 是已经解码过的正文（知识星球的 <e> 标签在调用前转换）。
    """
    lines = [
        "---",
        f"source: {item.source_type}",
        f"author: {item.author}",
        f'title: "{escape_title(item.title)}"',
        f"url: {item.url}",
        f"date: {date_part(item.published_at)}",
        f"tags: [{', '.join(item.tags)}]",
    ]
    if item.duration:
        lines.append(f'duration: "{item.duration}"')
    if item.subtitle_type:
        lines.append(f"subtitle_type: {item.subtitle_type}")
    if item.parts:
        lines.append(f"parts: {item.parts}")
    lines.append(f"word_count: {len(body.strip())}")
    lines.append(f"collected_at: {collected_at or now_iso()}")
    lines.extend(["---", "", f"# {item.title}", "", body, ""])
    return "\n".join(lines)


def split_frontmatter(raw: str) -> tuple[str, str] | None:
    """拆分 frontmatter 和正文，没有 frontmatter 时返回 None."""
    match = FRONTMATTER.match(raw)
    if not match:
        return None
    return match.group(1), match.group(2)


def body_text(raw: str) -> str:
    """去掉 frontmatter 和第一个 # 标题后的正文."""
    parts = split_frontmatter(raw)
    body = parts[1] if parts else raw
    return FIRST_HEADING.sub("", body.lstrip("\n"), count=1).strip()


def word_count(raw: str) -> int:
    """正文字符数."""
    return len(body_text(raw))


def replace_title(raw: str, new_title: str) -> str:
    """同步替换 frontmatter 的 title 行和正文第一个 # 标题."""
    escaped = escape_title(new_title)
    dash_count = 0
    heading_fixed = False
    updated: list[str] = []

    for line in raw.split("\n"):
        if line == "---":
            dash_count += 1
            updated.append(line)
            continue
        if dash_count == 1 and line.startswith("title:"):
            updated.append(f'title: "{escaped}"')
            continue
        if dash_count >= 2 and not heading_fixed and line.startswith("# "):
            heading_fixed = True
            updated.append(f"# {new_title}")
            continue
        updated.append(line)

    return "\n".join(updated)


def render_index(counts: dict[str, int], authors: dict[str, set[str]], total: int) -> str:
    """生成 _index.md 内容."""
    now = utc_now().strftime("%Y-%m-%d %H:%M")
    lines = [
        "# 数据索引",
        "",
        f"更新: {now} | 总计: {total} 条",
        "",
        "## 平台统计",
        "",
        "| 平台 | 数量 | 作者 |",
        "|------|------|------|",
    ]
    for source_type, count in sorted(counts.items(), key=lambda kv: kv[1], reverse=True):
        names = ", ".join(sorted(authors.get(source_type, set()))) or "-"
        lines.append(f"| {source_type} | {count} | {names} |")
    lines.append("")
    return "\n".join(lines)


def summarize(rows: list[tuple[str, str | None]]) -> tuple[dict[str, int], dict[str, set[str]]]:
    """按平台统计数量和作者，输入为 (平台, 作者) 列表."""
    counts: dict[str, int] = defaultdict(int)
    authors: dict[str, set[str]] = defaultdict(set)
    for source_type, author in rows:
        counts[source_type] += 1
        if author:
            authors[source_type].add(author)
    return dict(counts), dict(authors)
