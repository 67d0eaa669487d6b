# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""UTC helpers.

Columns are TIMESTAMPTZ and every datetime handled by the services is
aware. Values coming from drivers or clients without tzinfo are taken to
be UTC.
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime | None) -> datetime | None:
    """Return `dt` as an aware UTC datetime; naive values are read as UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def isoformat_utc(dt: datetime | None) -> str | None:
    """ISO 8601 text of `dt` in UTC, for audit payloads and API hints."""
    value = ensure_utc(dt)
    return value.isoformat() if value is not None else None


def is_expired(deadline: datetime, now: datetime | None = None) -> bool:
    """True once `now` is past `deadline`; the deadline itself still counts."""
    return ensure_utc(deadline) < (ensure_utc(now) or utc_now())
