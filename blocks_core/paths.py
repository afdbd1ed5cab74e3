"""Centralized path management for blocks.

All blocks-related files live under ~/.blocks/ (or $BLOCKS_HOME):
- ~/.blocks/config.yaml      - Optional user settings
- ~/.blocks/debug/           - Log files
- ~/.blocks/debug-enabled    - If present, enable debug logging
"""

import logging
import os
import shlex
from pathlib import Path


def blocks_home() -> Path:
    """Return the blocks home directory (~/.blocks/ or $BLOCKS_HOME)."""
    override = os.environ.get("BLOCKS_HOME")
    d = Path(override) if override else Path.home() / ".blocks"
    d.mkdir(parents=True, exist_ok=True)
    return d


def debug_dir() -> Path:
    """Return the debug/logs directory (~/.blocks/debug/)."""
    d = blocks_home() / "debug"
    d.mkdir(parents=True, exist_ok=True)
    return d


def config_file() -> Path:
    """Return the path of the optional user settings file."""
    return blocks_home() / "config.yaml"


def debug_enabled() -> bool:
    """Check if debug logging is enabled.

    Either ``BLOCKS_DEBUG=1`` in the environment or a
    ~/.blocks/debug-enabled marker file turns it on.
    """
    if os.environ.get("BLOCKS_DEBUG", "") not in ("", "0"):
        return True
    return (blocks_home() / "debug-enabled").exists()


def set_debug(enabled: bool = True) -> None:
    """Enable or disable debug logging for future runs."""
    marker = blocks_home() / "debug-enabled"
    if enabled:
        marker.write_text("true\n")
    elif marker.exists():
        marker.unlink()


def command_log_file() -> Path:
    """Get the path to the shared log file.

    Located at ~/.blocks/debug/blocks.log. Both the module loggers and the
    shell command log write here.
    """
    return debug_dir() / "blocks.log"


def configure_logger(name: str, max_bytes: int = 10_000_000) -> logging.Logger:
    """Configure a logger that always writes to file with rotation.

    Args:
        name: Logger name (e.g., "blocks.tui")
        max_bytes: Maximum log file size before rotation (default 10MB)

    Returns:
        Configured logger instance
    """
    from logging.handlers import RotatingFileHandler

    logger = logging.getLogger(name)

    # Avoid adding duplicate handlers
    if logger.handlers:
        return logger

    handler = RotatingFileHandler(
        command_log_file(),
        maxBytes=max_bytes,
        backupCount=1,
    )
    handler.setFormatter(logging.Formatter(
        "%(asctime)s %(levelname)s %(message)s", datefmt="%H:%M:%S"
    ))
    logger.addHandler(handler)
    logger.propagate = False

    if debug_enabled():
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.INFO)

    return logger


def log_shell_command(cmd: list[str] | str, prefix: str = "shell", returncode: int | None = None) -> None:
    """Log a shell command to the shared log file.

    Args:
        cmd: Command list or string to log
        prefix: Prefix for the log entry (e.g., "git", "gh")
        returncode: If provided, logs as completion with return code
    """
    cmd_str = shlex.join(cmd) if isinstance(cmd, list) else cmd

    try:
        from datetime import datetime
        timestamp = datetime.now().strftime("%H:%M:%S")

        if returncode is not None:
            if returncode == 0:
                entry = f"{timestamp} INFO  {prefix} done: {cmd_str}\n"
            else:
                entry = f"{timestamp} WARN  {prefix} failed (rc={returncode}): {cmd_str}\n"
        else:
            entry = f"{timestamp} INFO  {prefix}: {cmd_str}\n"

        with open(command_log_file(), "a") as f:
            f.write(entry)
    except OSError:
        pass
