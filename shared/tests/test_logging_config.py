"""Tests for shared logging configuration."""

import asyncio
import json
import logging
import re

import pytest
import structlog

from shared.logging_config import NOISY_LOGGERS, bind_project_context, get_logger, setup_logging


def strip_ansi(text):
    return re.sub(r"\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])", "", text)


def json_events(output):
    return [json.loads(line) for line in output.strip().split("\n") if line.strip()]


def find_event(output, name):
    return next((e for e in json_events(output) if e.get("event") == name), None)


@pytest.fixture(autouse=True)
def reset_logging():
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()


class TestSetupLogging:
    def test_defaults_to_autodeploy_service(self, monkeypatch, capsys):
        monkeypatch.delenv("SERVICE_NAME", raising=False)
        monkeypatch.setenv("LOG_FORMAT", "json")
        monkeypatch.delenv("LOG_LEVEL", raising=False)

        setup_logging()
        structlog.get_logger().info("deploy_started", provider="vercel")

        entry = find_event(capsys.readouterr().out, "deploy_started")
        assert entry is not None
        assert entry["service"] == "autodeploy"
        assert entry["provider"] == "vercel"
        assert entry["level"] == "info"
        assert "timestamp" in entry

    def test_initialization_event_reports_settings(self, capsys):
        setup_logging(service_name="autodeploy", log_format="json", log_level="debug")

        entry = find_event(capsys.readouterr().out, "logging_initialized")
        assert entry["log_format"] == "json"
        assert entry["log_level"] == "DEBUG"

    def test_console_format_renders_key_values(self, capsys):
        setup_logging(service_name="autodeploy", log_format="console", log_level="INFO")
        structlog.get_logger().info("health_probe", status_code=503)

        output = strip_ansi(capsys.readouterr().out)
        assert "health_probe" in output
        assert "status_code=503" in output

    def test_level_filtering(self, capsys):
        setup_logging(service_name="autodeploy", log_format="console", log_level="WARNING")
        logger = structlog.get_logger()

        logger.info("command_finished")
        logger.warning("project_unhealthy")

        output = strip_ansi(capsys.readouterr().out)
        assert "command_finished" not in output
        assert "project_unhealthy" in output

    def test_noisy_loggers_raised_to_warning(self):
        setup_logging(service_name="autodeploy", log_format="console", log_level="DEBUG")

        for name in NOISY_LOGGERS:
            assert logging.getLogger(name).level == logging.WARNING

    def test_exception_info_is_rendered(self, capsys):
        setup_logging(service_name="autodeploy", log_format="json", log_level="INFO")

        try:
            raise RuntimeError("render unreachable")
        except RuntimeError as e:
            structlog.get_logger().error(
                "lifecycle_task_crashed", error=str(e), error_type=type(e).__name__, exc_info=True
            )

        entry = find_event(capsys.readouterr().out, "lifecycle_task_crashed")
        assert entry["error_type"] == "RuntimeError"
        assert "render unreachable" in entry["exception"]


class TestProjectContext:
    def test_bind_project_context_adds_fields(self, capsys):
        setup_logging(service_name="autodeploy", log_format="json", log_level="INFO")

        bind_project_context("proj-1", action="deploy")
        structlog.get_logger().info("deploy_succeeded")

        entry = find_event(capsys.readouterr().out, "deploy_succeeded")
        assert entry["project_id"] == "proj-1"
        assert entry["action"] == "deploy"

    def test_bind_without_action(self, capsys):
        setup_logging(service_name="autodeploy", log_format="json", log_level="INFO")

        bind_project_context("proj-2")
        structlog.get_logger().info("qa_finished")

        entry = find_event(capsys.readouterr().out, "qa_finished")
        assert entry["project_id"] == "proj-2"
        assert "action" not in entry

    @pytest.mark.asyncio
    async def test_context_bound_in_task_does_not_leak(self, capsys):
        setup_logging(service_name="autodeploy", log_format="json", log_level="INFO")

        async def background():
            bind_project_context("proj-3", action="auto_fix")
            structlog.get_logger().info("inside_task")

        await asyncio.create_task(background())
        structlog.get_logger().info("outside_task")

        output = capsys.readouterr().out
        assert find_event(output, "inside_task")["project_id"] == "proj-3"
        assert "project_id" not in find_event(output, "outside_task")


def test_get_logger_returns_usable_logger():
    setup_logging(service_name="autodeploy")
    assert hasattr(get_logger("autodeploy.test"), "info")
