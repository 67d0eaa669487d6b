# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tests for structured logging setup and request context binding."""

import logging
from unittest.mock import MagicMock

import structlog

from edurecords.utils.logging import (
    bind_context,
    bind_request_context,
    clear_context,
    get_logger,
    setup_logging,
)


def _settings(log_level: str = "INFO", development: bool = True, debug: bool = False) -> MagicMock:
    settings = MagicMock()
    settings.log_level = log_level
    settings.is_development = development
    settings.debug = debug
    return settings


class TestSetupLogging:
    def teardown_method(self) -> None:
        structlog.reset_defaults()
        clear_context()

    def test_package_logger_level_follows_settings(self) -> None:
        setup_logging(_settings(log_level="debug"))

        assert logging.getLogger("edurecords").level == logging.DEBUG

    def test_noisy_loggers_quieted(self) -> None:
        setup_logging(_settings())

        assert logging.getLogger("sqlalchemy").level == logging.WARNING

    def test_json_renderer_outside_development(self) -> None:
        setup_logging(_settings(development=False))

        processors = structlog.get_config()["processors"]
        assert isinstance(processors[-1], structlog.processors.JSONRenderer)

    def test_console_renderer_in_development(self) -> None:
        setup_logging(_settings(development=True))

        processors = structlog.get_config()["processors"]
        assert isinstance(processors[-1], structlog.dev.ConsoleRenderer)

    def test_get_logger_returns_bound_logger(self) -> None:
        logger = get_logger("edurecords.test")

        assert hasattr(logger, "info")


class TestRequestContext:
    def teardown_method(self) -> None:
        clear_context()

    def test_bind_request_context_skips_anonymous_fields(self) -> None:
        bind_request_context("req-1")

        assert structlog.contextvars.get_contextvars() == {"request_id": "req-1"}

    def test_bind_request_context_with_identity(self) -> None:
        bind_request_context("req-1", tenant_id="tenant-a", user_id="user-1")

        assert structlog.contextvars.get_contextvars() == {
            "request_id": "req-1",
            "tenant_id": "tenant-a",
            "user_id": "user-1",
        }

    def test_clear_context(self) -> None:
        bind_context(academic_year_id="year-1")
        clear_context()

        assert structlog.contextvars.get_contextvars() == {}
