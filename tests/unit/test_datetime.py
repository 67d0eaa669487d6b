# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tests for the UTC helpers."""

from datetime import datetime, timedelta, timezone

from edurecords.utils.datetime import ensure_utc, is_expired, isoformat_utc

PARIS_SUMMER = timezone(timedelta(hours=2))


class TestEnsureUtc:
    def test_naive_read_as_utc(self) -> None:
        assert ensure_utc(datetime(2024, 7, 1, 8, 0)) == datetime(2024, 7, 1, 8, 0, tzinfo=timezone.utc)

    def test_aware_converted(self) -> None:
        value = ensure_utc(datetime(2024, 7, 1, 10, 0, tzinfo=PARIS_SUMMER))

        assert value is not None
        assert value.tzinfo == timezone.utc
        assert value.hour == 8

    def test_none_passthrough(self) -> None:
        assert ensure_utc(None) is None
        assert isoformat_utc(None) is None


class TestIsExpired:
    def test_deadline_itself_not_expired(self) -> None:
        deadline = datetime(2024, 9, 1, tzinfo=timezone.utc)

        assert is_expired(deadline, now=deadline) is False

    def test_past_deadline_expired(self) -> None:
        deadline = datetime(2024, 9, 1, tzinfo=timezone.utc)

        assert is_expired(deadline, now=deadline + timedelta(seconds=1)) is True

    def test_mixed_naive_and_aware(self) -> None:
        assert is_expired(datetime(2024, 9, 1), now=datetime(2024, 9, 2, tzinfo=PARIS_SUMMER)) is True

    def test_isoformat_utc(self) -> None:
        assert isoformat_utc(datetime(2024, 7, 1, 10, 0, tzinfo=PARIS_SUMMER)) == "2024-07-01T08:00:00+00:00"
