"""Tests for agentrun.logging: file logs, token log and error retrieval."""

import logging

import pytest

from agentrun import logging as agent_logging
from agentrun.agent import Agent
from agentrun.errors import ProviderCallFailed, ToolExecutionFailed, ToolNotFound
from agentrun.llm import FakeAdapter, text_response, tool_call_response
from agentrun.llm.base import Usage
from agentrun.runner import run
from agentrun.tools import FunctionTool


@pytest.fixture
def file_logging(isolated_data_dir, monkeypatch):
    monkeypatch.setattr(agent_logging, "_current_log_file", None)
    monkeypatch.setattr(agent_logging, "_token_log_file", None)
    logger = agent_logging.setup_logging(verbose=False, log_to_file=True)
    yield logger
    agent_logging.setup_logging(verbose=False, log_to_file=False)


class TestSetupLogging:
    def test_console_only_by_default(self):
        logger = agent_logging.setup_logging(verbose=False, log_to_file=False)
        assert logger.name == "agentrun"
        assert not any(isinstance(h, logging.FileHandler) for h in logger.handlers)
        assert logger.propagate is False

    def test_file_handler_under_data_dir(self, file_logging, isolated_data_dir):
        log_path = agent_logging.get_current_log_path()
        assert log_path.parent == isolated_data_dir / "logs"
        assert log_path.name.startswith("agent_")
        assert agent_logging.get_token_log_path().name.startswith("token_")

    def test_reinit_does_not_duplicate_handlers(self):
        agent_logging.setup_logging(log_to_file=False)
        logger = agent_logging.setup_logging(log_to_file=False)
        assert len(logger.handlers) == 1

    def test_session_id_in_file_log(self, file_logging):
        agent_logging.set_session_id("session-123")
        file_logging.info("hello from the test")
        for handler in file_logging.handlers:
            handler.flush()
        text = agent_logging.get_current_log_path().read_text(encoding="utf-8")
        assert "session-123 | hello from the test" in text


class TestLibraryLogger:
    @pytest.fixture
    def quiet_logger(self):
        logger = logging.getLogger(agent_logging.LOGGER_NAME)
        saved = (logger.handlers[:], logger.propagate, logger.level)
        logger.handlers = [logging.NullHandler()]
        logger.propagate = True
        logger.setLevel(logging.NOTSET)
        yield logger
        logger.handlers, logger.propagate = saved[0], saved[1]
        logger.setLevel(saved[2])

    def test_get_logger_attaches_nothing(self, quiet_logger):
        logger = agent_logging.get_logger()
        assert logger is quiet_logger
        assert all(isinstance(h, logging.NullHandler) for h in logger.handlers)
        assert logger.propagate is True

    def test_records_reach_host_application(self, quiet_logger, caplog):
        def explode():
            raise RuntimeError("kaboom")

        adapter = FakeAdapter([tool_call_response([("call_1", "explode", "{}")]), text_response("ok")])
        with caplog.at_level(logging.DEBUG, logger=agent_logging.LOGGER_NAME):
            result = run(Agent(name="A", instructions="x", tools=[FunctionTool(explode)]), "go", adapter=adapter)

        assert result.final_output == "ok"
        assert not [r for r in caplog.records if r.levelno >= logging.ERROR]
        assert any(
            r.levelno == logging.WARNING and "Tool execution failed: explode" in r.getMessage()
            for r in caplog.records
        )


class TestTokenLog:
    def test_noop_without_file(self, monkeypatch):
        monkeypatch.setattr(agent_logging, "_token_log_file", None)
        agent_logging.log_token_usage("A", 1, 1, 1, 2, 1, 1, 2)

    def test_explicit_path(self, tmp_path):
        path = tmp_path / "token.log"
        agent_logging.log_token_usage("Agent", 2, 10, 5, 15, 30, 12, 42, token_log_path=path)
        line = path.read_text(encoding="utf-8")
        assert "| Agent | 2 |" in line
        assert "prompt:10 completion:5 total:15" in line
        assert "cum_total:42" in line

    def test_run_writes_token_lines(self, file_logging):
        adapter = FakeAdapter([
            tool_call_response([("call_1", "ping", "{}")], usage=Usage(5, 1, 6)),
            text_response("done", usage=Usage(7, 2, 9)),
        ])
        agent = Agent(name="Pinger", instructions="x", tools=[FunctionTool(lambda: "pong", name="ping")])
        run(agent, "ping", adapter=adapter)
        lines = agent_logging.get_token_log_path().read_text(encoding="utf-8").splitlines()
        assert lines[0].startswith("#")
        assert len(lines) == 3
        assert "cum_prompt:12 cum_completion:3 cum_total:15" in lines[-1]


class TestRecentErrors:
    def test_no_log_dir(self):
        assert agent_logging.get_recent_errors() == []

    def test_tool_failure_is_recorded(self, file_logging):
        def explode():
            raise RuntimeError("kaboom")

        adapter = FakeAdapter([tool_call_response([("call_1", "explode", "{}")]), text_response("ok")])
        run(Agent(name="A", instructions="x", tools=[FunctionTool(explode)]), "go", adapter=adapter)
        for handler in file_logging.handlers:
            handler.flush()

        errors = agent_logging.get_recent_errors()
        assert not any(e["level"] == "ERROR" for e in errors)
        warning = next(e for e in errors if "Tool execution failed" in e["message"])
        assert warning["level"] == "WARNING"
        assert "explode" in warning["message"]
        assert any("kaboom" in e["message"] for e in errors)

    def test_print_recent_errors_empty(self, capsys):
        agent_logging.print_recent_errors()
        assert "No errors found" in capsys.readouterr().out


class TestErrors:
    def test_provider_call_failed_message(self):
        err = ProviderCallFailed("openai", "rate limited", status_code=429, payload={"error": {}})
        assert str(err) == "[openai] HTTP 429 rate limited"
        assert err.payload == {"error": {}}

    def test_provider_call_failed_without_status(self):
        assert str(ProviderCallFailed("anthropic", "connection reset")) == "[anthropic] connection reset"

    def test_tool_errors_expose_model_text(self):
        assert str(ToolNotFound("teleport")) == "Tool 'teleport' not found"
        cause = ValueError("bad city")
        err = ToolExecutionFailed("getWeather", cause)
        assert str(err) == "bad city"
        assert err.cause is cause
