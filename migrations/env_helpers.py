"""Database URL resolution for Alembic.

Kept apart from env.py so it can be tested without alembic.context.
DATABASE_URL may be a URL (postgres://, postgresql://) or a libpq
key=value DSN; both resolve to a postgresql+psycopg2:// SQLAlchemy URL.
"""

from __future__ import annotations

import os
import re
from urllib.parse import quote_plus, urlparse, urlunparse

_DSN_TOKEN = re.compile(r"(\w+)\s*=\s*('(?:[^'\\]|\\.)*'|\S*)")


def _parse_libpq_dsn(dsn: str) -> dict[str, str]:
    """Parse key=value pairs; single-quoted values may contain spaces and escapes."""
    tokens: dict[str, str] = {}
    for key, raw in _DSN_TOKEN.findall(dsn):
        if raw.startswith("'") and raw.endswith("'") and len(raw) >= 2:
            raw = re.sub(r"\\(.)", r"\1", raw[1:-1])
        tokens[key] = raw
    return tokens


def _libpq_dsn_to_url(dsn: str) -> str:
    tokens = _parse_libpq_dsn(dsn)
    password = tokens.get("password") or os.environ.get("DB_PASSWORD", "")

    credentials = f"{quote_plus(tokens.get('user', ''))}:{quote_plus(password)}"
    dbname = quote_plus(tokens.get("dbname", ""))
    host = tokens.get("host", "localhost")

    if host.startswith("/"):
        # Unix socket directory
        return f"postgresql+psycopg2://{credentials}@/{dbname}?host={quote_plus(host)}"

    port = tokens.get("port", "5432")
    return f"postgresql+psycopg2://{credentials}@{host}:{port}/{dbname}"


def _get_database_url() -> str:
    url = os.environ.get("DATABASE_URL")
    if not url:
        raise RuntimeError("DATABASE_URL is required to run migrations")

    if "://" not in url:
        return _libpq_dsn_to_url(url)

    for prefix in ("postgres://", "postgresql://"):
        if url.startswith(prefix):
            url = "postgresql+psycopg2://" + url[len(prefix):]
            break

    db_password = os.environ.get("DB_PASSWORD", "")
    parsed = urlparse(url)
    if db_password and not parsed.password:
        netloc = f"{quote_plus(parsed.username or '')}:{quote_plus(db_password)}@{parsed.hostname}"
        if parsed.port:
            netloc += f":{parsed.port}"
        url = urlunparse(parsed._replace(netloc=netloc))
    return url
