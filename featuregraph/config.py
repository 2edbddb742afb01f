"""featuregraph configuration."""
import os


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


# App
VERSION = "0.1.0"

# Logging
LOG_LEVEL = os.getenv("FEATUREGRAPH_LOG_LEVEL", "INFO").upper()

# Git
GIT_BINARY = os.getenv("FEATUREGRAPH_GIT_BINARY", "git")
SKIP_CHANGES = _env_bool("FEATUREGRAPH_SKIP_CHANGES", False)

# Watcher
WATCH_DEBOUNCE_MS = _env_int("FEATUREGRAPH_WATCH_DEBOUNCE_MS", 500)

# Server settings
HOST = os.getenv("FEATUREGRAPH_HOST", "127.0.0.1")
PORT = _env_int("FEATUREGRAPH_PORT", 3000)

# CORS
FRONTEND_ORIGIN = os.getenv("FEATUREGRAPH_FRONTEND_ORIGIN", "http://localhost:5173")

# Static build
BUILD_DIR = os.getenv("FEATUREGRAPH_BUILD_DIR", "build")
