"""
Logging configuration for agentrun.

Nothing is attached at import: the library logger only has a NullHandler
until ``setup_logging()`` is called (``main.py`` does this). After that there
are two destinations, one logger (``"agentrun"``):

  - Console: DEBUG if verbose, WARNING+ otherwise
    Config console_format options:
    - "simple": (default) bare messages for DEBUG/INFO, [LEVEL] prefix for WARNING+
    - "full"  : same structured format as the file handler
    - "clean" : no console output at all
  - File (opt-in via ``log_to_file`` config key or argument):
    - Always DEBUG level, one file per session
    - Format: "timestamp | level | name | session_id | message"

A per-call token usage log is written next to the session log file when file
logging is enabled. Log files are stored in <data_dir>/logs/.
"""

import logging
import sys
import traceback
from datetime import datetime
from pathlib import Path
from typing import Optional

from . import config


LOGGER_NAME = "agentrun"

# Silent until the application calls setup_logging()
logging.getLogger(LOGGER_NAME).addHandler(logging.NullHandler())

# Module-level state (shared across re-inits)
_session_filter: Optional["_SessionFilter"] = None
_current_log_file: Optional[Path] = None
_token_log_file: Optional[Path] = None


def get_log_dir() -> Path:
    """Return the log directory under the configured data directory."""
    return config.get_data_dir() / "logs"


class _SessionFilter(logging.Filter):
    """Injects session_id into every log record."""

    def __init__(self) -> None:
        super().__init__()
        self.session_id = ""

    def filter(self, record: logging.LogRecord) -> bool:
        record.session_id = self.session_id or "-"
        return True


class _ConsoleFormatter(logging.Formatter):
    """Console formatter: shows [LEVEL] prefix only for WARNING and above.

    DEBUG/INFO messages print bare (e.g. ``  [Runner] Turn 1/10``).
    WARNING/ERROR messages include the level (e.g. ``  [WARNING] ...``).
    """

    def format(self, record: logging.LogRecord) -> str:
        if record.levelno >= logging.WARNING:
            return f"  [{record.levelname}] {record.getMessage()}"
        return f"  {record.getMessage()}"


def setup_token_log(session_timestamp: str) -> Path:
    """Create the per-API-call token usage log file.

    Args:
        session_timestamp: Timestamp string (e.g. '20260210_211534') shared
            with the main log file for easy correlation.

    Returns:
        Path to the token log file.
    """
    global _token_log_file
    log_dir = get_log_dir()
    log_dir.mkdir(parents=True, exist_ok=True)
    path = log_dir / f"token_{session_timestamp}.log"
    _token_log_file = path
    with open(path, "w", encoding="utf-8") as f:
        f.write("# timestamp | agent | turn | prompt completion total | cum_prompt cum_completion cum_total\n")
    return path


def log_token_usage(
    agent_name: str,
    turn: int,
    prompt_tokens: int,
    completion_tokens: int,
    total_tokens: int,
    cumulative_prompt: int,
    cumulative_completion: int,
    cumulative_total: int,
    token_log_path: Optional[Path] = None,
) -> None:
    """Append one line to the token usage log.

    Does nothing when file logging is not enabled.

    Args:
        agent_name: Name of the agent that made the call.
        turn: Turn number within the run.
        prompt_tokens: Prompt tokens for this call.
        completion_tokens: Completion tokens for this call.
        total_tokens: Total tokens for this call.
        cumulative_prompt: Running prompt total for the run.
        cumulative_completion: Running completion total for the run.
        cumulative_total: Running total for the run.
        token_log_path: Explicit path to the token log file. If None, falls back
            to the module-global token log.
    """
    target = token_log_path or _token_log_file
    if target is None:
        return
    ts = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    line = (
        f"{ts} | {agent_name} | {turn} | "
        f"prompt:{prompt_tokens} completion:{completion_tokens} total:{total_tokens} | "
        f"cum_prompt:{cumulative_prompt} cum_completion:{cumulative_completion} "
        f"cum_total:{cumulative_total}\n"
    )
    try:
        with open(target, "a", encoding="utf-8") as f:
            f.write(line)
    except OSError:
        pass  # Token accounting must not break a run


def setup_logging(verbose: bool = False, log_to_file: Optional[bool] = None) -> logging.Logger:
    """Configure logging for agent runs.

    Args:
        verbose: If True, show DEBUG level on console; otherwise WARNING+ only
        log_to_file: Write a per-session log file (and token log). Defaults to
            the ``log_to_file`` config key.

    Returns:
        Configured logger instance
    """
    global _session_filter, _current_log_file
    if log_to_file is None:
        log_to_file = bool(config.LOG_TO_FILE)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)  # Capture everything, filter at handler level
    logger.propagate = False

    # Clear existing handlers (in case of re-init)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    # Session filter: reuse existing instance to preserve session_id across re-inits
    if _session_filter is None:
        _session_filter = _SessionFilter()
    logger.addFilter(_session_filter)

    file_format = logging.Formatter(
        "%(asctime)s | %(levelname)-8s | %(name)s | %(session_id)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    console_format = config.CONSOLE_FORMAT
    if console_format == "clean":
        logger.addHandler(logging.NullHandler())
    else:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
        if console_format == "full":
            console_handler.setFormatter(file_format)
        else:
            console_handler.setFormatter(_ConsoleFormatter())
        logger.addHandler(console_handler)

    if log_to_file:
        log_dir = get_log_dir()
        log_dir.mkdir(parents=True, exist_ok=True)
        session_timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
        log_file = log_dir / f"agent_{session_timestamp}.log"
        _current_log_file = log_file
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(file_format)
        logger.addHandler(file_handler)

        # Token usage log (shares the same timestamp suffix)
        setup_token_log(session_timestamp)

        logger.info("=" * 60)
        logger.info(f"Session started at {datetime.now().isoformat()}")
        logger.info(f"Log file: {log_file}")

    return logger


def get_logger() -> logging.Logger:
    """Get the agentrun logger instance.

    Handlers are only attached by ``setup_logging()``; until then records
    propagate to whatever logging the host application configured.

    Returns:
        The agentrun logger
    """
    return logging.getLogger(LOGGER_NAME)


def set_session_id(session_id: str) -> None:
    """Set the session ID that will be included in all subsequent log lines.

    Args:
        session_id: The session identifier (e.g. '20260209_223120_4b7103d5')
    """
    global _session_filter
    if _session_filter is None:
        # Logger not set up yet: create filter so it's ready when logging starts
        _session_filter = _SessionFilter()
    _session_filter.session_id = session_id


def log_error(
    message: str,
    exc: Optional[BaseException] = None,
    context: Optional[dict] = None,
    level: int = logging.ERROR,
) -> None:
    """Log an error with full details including stack trace.

    Args:
        message: Error description
        exc: Optional exception to include stack trace from
        context: Optional dict of additional context (tool name, args, etc.)
        level: Log level (absorbed failures use WARNING)
    """
    logger = get_logger()

    lines = [message]

    if context:
        lines.append("Context:")
        for key, value in context.items():
            lines.append(f"  {key}: {value}")

    if exc:
        lines.append(f"Exception type: {type(exc).__name__}")
        lines.append(f"Exception message: {exc}")
        lines.append("Stack trace:")
        lines.append("".join(traceback.format_exception(type(exc), exc, exc.__traceback__)))

    logger.log(level, "\n".join(lines))


def log_tool_call(tool_name: str, tool_args) -> None:
    """Log a tool call for debugging.

    Args:
        tool_name: Name of the tool being called
        tool_args: Arguments passed to the tool (raw JSON or parsed)
    """
    logger = get_logger()
    logger.debug(f"Tool call: {tool_name}({tool_args})")


def log_tool_result(tool_name: str, content: str, success: bool) -> None:
    """Log a tool result.

    Args:
        tool_name: Name of the tool
        content: Tool message content sent back to the model
        success: Whether the tool succeeded
    """
    logger = get_logger()
    if success:
        logger.debug(f"Tool result: {tool_name} -> success")
    else:
        logger.warning(f"Tool result: {tool_name} -> {content}")


def log_run_end(agent_name: str, turns: int, token_usage: dict) -> None:
    """Log the end of a run with usage stats.

    Args:
        agent_name: Name of the agent that ran
        turns: Number of turns used
        token_usage: Dict with prompt_tokens, completion_tokens, total_tokens
    """
    logger = get_logger()
    logger.info(
        f"[Runner] {agent_name} finished after {turns} turn(s). "
        f"Tokens: {token_usage.get('total_tokens', 0):,} "
        f"(prompt: {token_usage.get('prompt_tokens', 0):,}, "
        f"completion: {token_usage.get('completion_tokens', 0):,})"
    )


def get_token_log_path() -> Optional[Path]:
    """Return the path to the current session's token log file (or None)."""
    return _token_log_file


def get_current_log_path() -> Optional[Path]:
    """Return the path to the current session's log file, or the newest one on disk."""
    if _current_log_file is not None:
        return _current_log_file
    logs = sorted(get_log_dir().glob("agent_*.log"))
    if logs:
        return logs[-1]
    return None


def get_recent_errors(days: int = 7, limit: int = 50) -> list[dict]:
    """Retrieve recent errors from log files.

    Args:
        days: How many days back to search
        limit: Maximum number of errors to return

    Returns:
        List of error entries with timestamp, level, message, and details
    """
    errors = []
    cutoff = datetime.now().timestamp() - days * 86400
    log_dir = get_log_dir()
    if not log_dir.exists():
        return errors
    # Collect all log files, newest first
    log_files = sorted(log_dir.glob("agent_*.log"), reverse=True)

    for log_file in log_files:
        if log_file.stat().st_mtime < cutoff:
            break

        try:
            with open(log_file, "r", encoding="utf-8") as f:
                current_error = None
                for line in f:
                    if "| ERROR" in line or "| WARNING" in line:
                        if current_error:
                            errors.append(current_error)
                        # Format: timestamp | level | name | session_id | message
                        parts = line.split(" | ", 4)
                        if len(parts) >= 5:
                            current_error = {
                                "timestamp": parts[0].strip(),
                                "level": parts[1].strip(),
                                "session_id": parts[3].strip(),
                                "message": parts[4].strip(),
                                "details": [],
                            }
                    elif current_error and line.startswith("  "):
                        current_error["details"].append(line.rstrip())

                if current_error:
                    errors.append(current_error)

        except OSError:
            continue

        if len(errors) >= limit:
            break

    return errors[:limit]


def print_recent_errors(days: int = 7, limit: int = 10) -> None:
    """Print recent errors to console for review.

    Args:
        days: How many days back to search
        limit: Maximum number of errors to show
    """
    errors = get_recent_errors(days=days, limit=limit)

    if not errors:
        print(f"No errors found in the last {days} days.")
        return

    print(f"Recent errors (last {days} days, showing up to {limit}):")
    print("-" * 60)

    for i, error in enumerate(errors, 1):
        print(f"\n{i}. [{error['timestamp']}] {error['level']}")
        print(f"   {error['message']}")
        if error["details"]:
            for detail in error["details"][:5]:
                print(f"   {detail}")
            if len(error["details"]) > 5:
                print(f"   ... and {len(error['details']) - 5} more lines")

    print("-" * 60)
    print(f"Full logs available at: {get_log_dir()}")
