"""时间工具."""

from datetime import UTC, datetime


def utc_now() -> datetime:
    """当前 UTC 时间（带时区）."""
    return datetime.now(UTC)


def to_iso(value: datetime) -> str:
    """转为 ``2024-01-02T03:04:05.000Z`` 形式的 UTC 字符串."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    value = value.astimezone(UTC)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def now_iso() -> str:
    """当前时间的 ISO 字符串."""
    return to_iso(utc_now())


def from_timestamp(seconds: float) -> str:
    """Unix 秒转 ISO 字符串."""
    return to_iso(datetime.fromtimestamp(seconds, UTC))


def parse_iso(value: str) -> datetime | None:
    """解析各平台返回的 ISO 时间，兼容 ``Z`` 和 ``+0800`` 写法."""
    if not value:
        return None
    text = value.strip().replace("Z", "+00:00")
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        pass
    for fmt in ("%Y-%m-%dT%H:%M:%S.%f%z", "%Y-%m-%dT%H:%M:%S%z"):
        try:
            return datetime.strptime(value.strip(), fmt)
        except ValueError:
            continue
    return None


def normalize_iso(value: str | None) -> str:
    """把任意 ISO 时间规范成 UTC 字符串，无法解析时用当前时间."""
    parsed = parse_iso(value or "")
    return to_iso(parsed) if parsed else now_iso()


def date_part(value: str | None) -> str:
    """取 ``YYYY-MM-DD`` 部分，缺失时用今天."""
    if value and "T" in value:
        return value.split("T", 1)[0]
    if value and len(value) >= 10:
        return value[:10]
    return utc_now().strftime("%Y-%m-%d")
