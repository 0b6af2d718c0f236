import uuid
from datetime import datetime, timezone
from typing import Optional


def new_uuid() -> str:
    return str(uuid.uuid4())


def now_utc() -> datetime:
    return datetime.now(tz=timezone.utc)


def etag_for(version: int) -> str:
    return f'"{version}"'


def parse_etag(value: Optional[str]) -> Optional[int]:
    """Return the version carried by an ``If-Match`` header, or ``None``.

    ``*`` matches any version, so it yields ``None`` like a missing header.
    Weak validators (``W/"3"``) are accepted; anything that is not an
    integer version is treated as a mismatch by raising ``ValueError``.
    """
    if value is None:
        return None
    raw = value.strip()
    if raw == "*":
        return None
    if raw.startswith("W/"):
        raw = raw[2:]
    return int(raw.strip('"'))
