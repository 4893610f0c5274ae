from pathlib import Path
from datetime import datetime, timezone
from typing import Optional


def resolve_sqlite_url(url: str, project_root: Path) -> str:
    """Anchor a relative SQLite database path at ``project_root``.

    ``sqlite:///./raffle.db`` and ``sqlite+pysqlite:///data/raffle.db`` both
    become absolute paths under ``project_root``. Absolute paths, in-memory
    databases and non-SQLite URLs are returned unchanged.
    """
    scheme, sep, rest = url.partition(":///")
    if not sep or scheme.split("+", 1)[0] != "sqlite":
        return url
    path, qmark, query = rest.partition("?")
    if not path or path == ":memory:" or Path(path).is_absolute():
        return url
    return f"{scheme}:///{(project_root / path).resolve()}{qmark}{query}"


def dt_iso(dt: Optional[datetime]) -> Optional[str]:
    """Convert a datetime to an ISO 8601 string in UTC, or return None.

    Naive datetimes (SQLite drops tzinfo on the way back) are assumed to be UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat()
