"""Tests for structured logging."""

from __future__ import annotations

import json
import logging

from appsync_operator.logging import log_resource_event, log_stage_result, sanitize_secrets

logger = logging.getLogger("appsync_operator.tests")


class TestLogResourceEvent:
    """Test cases for log_resource_event."""

    def test_emits_json(self, caplog):
        """Test that events are logged as one JSON object."""
        with caplog.at_level(logging.INFO, logger=logger.name):
            log_resource_event(logger, "App", "my-app", "apps", "u1", "deploy", "DeployStarted", "Started deploy")

        data = json.loads(caplog.records[-1].getMessage())
        assert data["controller"] == "appsync-operator"
        assert data["resource"] == "App"
        assert data["reason"] == "DeployStarted"

    def test_redacts_secret_fields(self, caplog):
        """Test that secret extra fields never reach the log."""
        with caplog.at_level(logging.INFO, logger=logger.name):
            log_resource_event(logger, "App", "my-app", "apps", "u1", "x", "X", "msg", values="password: p")

        data = json.loads(caplog.records[-1].getMessage())
        assert data["values"] == "***REDACTED***"

    def test_sanitize_secrets_keeps_other_fields(self):
        """Test that non-secret fields are untouched."""
        assert sanitize_secrets({"stage": "fetch", "token": "t"}) == {"stage": "fetch", "token": "***REDACTED***"}


class TestLogStageResult:
    """Test cases for log_stage_result."""

    def test_failed_stage_is_warning(self, caplog):
        """Test that failed stages log at warning with their stderr tail."""
        with caplog.at_level(logging.DEBUG, logger=logger.name):
            log_stage_result(logger, "App", "my-app", "apps", "u1", "deploy", 1,
                             "Deploying: exit status 1", "x" * 5000 + "connection refused")

        record = caplog.records[-1]
        data = json.loads(record.getMessage())
        assert record.levelno == logging.WARNING
        assert data["reason"] == "DeployFailed"
        assert data["stderr"].endswith("connection refused")
        assert len(data["stderr"]) == 1024

    def test_successful_stage_is_debug(self, caplog):
        """Test that successful stages log at debug."""
        with caplog.at_level(logging.DEBUG, logger=logger.name):
            log_stage_result(logger, "App", "my-app", "apps", "u1", "fetch", 0, "", "")

        record = caplog.records[-1]
        assert record.levelno == logging.DEBUG
        assert json.loads(record.getMessage())["reason"] == "FetchSucceeded"
