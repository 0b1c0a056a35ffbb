"""对任意 JSON 树做遍历查找.

innertube 接口返回的是层级很深、结构经常变化的对象图，
这里不对路径做任何假设，只按 "某个键下挂着一个对象" 的形状查找节点。
"""

from collections.abc import Iterator
from typing import Any

JsonValue = dict[str, Any] | list[Any] | str | int | float | bool | None


def walk(tree: JsonValue) -> Iterator[dict[str, Any]]:
    """深度优先遍历所有对象节点（包括根节点）."""
    stack: list[JsonValue] = [tree]
    while stack:
        node = stack.pop()
        if isinstance(node, dict):
            yield node
            stack.extend(reversed(list(node.values())))
        elif isinstance(node, list):
            stack.extend(reversed(node))


def find_renderers(tree: JsonValue, key: str) -> list[dict[str, Any]]:
    """查找所有 ``{key: {...}}`` 形状的节点，按文档顺序返回其值."""
    found: list[dict[str, Any]] = []
    for node in walk(tree):
        value = node.get(key)
        if isinstance(value, dict):
            found.append(value)
    return found


def text_of(value: Any) -> str:
    """读取 innertube 文本节点：``simpleText`` 或 ``runs[*].text``."""
    if not isinstance(value, dict):
        return ""
    simple = value.get("simpleText")
    if isinstance(simple, str):
        return simple
    runs = value.get("runs")
    if isinstance(runs, list):
        return "".join(
            run.get("text", "") for run in runs if isinstance(run, dict)
        )
    return ""


def first_run_text(value: Any) -> str:
    """读取 ``runs[0].text``，没有时退回 ``simpleText``."""
    if not isinstance(value, dict):
        return ""
    runs = value.get("runs")
    if isinstance(runs, list) and runs and isinstance(runs[0], dict):
        return str(runs[0].get("text", ""))
    simple = value.get("simpleText")
    return simple if isinstance(simple, str) else ""
