"""Runtime configuration read from environment variables."""

import logging
import os
from pathlib import Path
from typing import Literal, Optional

DEFAULT_DATA_DIR = Path(__file__).parent.parent / "data"

# Storage key shared by every backend (mirrors the browser local storage key)
STORAGE_KEY = "ethosprompt_bookmarks"

# Backend type
StorageBackend = Literal["sqlite", "json", "memory"]

POPULAR_SEARCHES = [
    "prompt engineering",
    "chain of thought",
    "production optimization",
    "multimodal AI",
    "AI safety",
    "enterprise implementation",
]

# Categories shown in the "popular by category" discovery panel
FEATURED_CATEGORY_IDS = ["tutorials", "best-practices", "case-studies", "research"]


def get_data_dir() -> Path:
    """Get data directory from environment variable."""
    value = os.getenv("ETHOS_DATA_DIR")
    return Path(value) if value else DEFAULT_DATA_DIR


def get_corpus_source() -> str:
    """Get corpus location (file path or http(s) URL)."""
    return os.getenv("ETHOS_CORPUS_PATH") or str(get_data_dir() / "corpus.json")


def get_engagement_path() -> Path:
    """Get path of the static engagement table."""
    value = os.getenv("ETHOS_ENGAGEMENT_PATH")
    return Path(value) if value else get_data_dir() / "engagement.json"


def get_engagement_url() -> Optional[str]:
    """Get live analytics feed URL, if one is configured."""
    return os.getenv("ETHOS_ENGAGEMENT_URL") or None


def get_storage_backend() -> StorageBackend:
    """Get bookmark storage backend from environment variable."""
    backend = os.getenv("ETHOS_STORAGE_BACKEND", "sqlite").lower()
    if backend not in ("sqlite", "json", "memory"):
        backend = "sqlite"
    return backend


def get_log_file() -> Path:
    """Get path of the tool-call log file."""
    value = os.getenv("ETHOS_LOG_FILE")
    return Path(value) if value else get_data_dir() / "mcp_debug.log"


def get_log_level() -> int:
    """Get logging level, falling back to INFO for unknown names."""
    level = logging.getLevelName(os.getenv("ETHOS_LOG_LEVEL", "INFO").upper())
    return level if isinstance(level, int) else logging.INFO


def setup_logging() -> None:
    """Configure standard logging format for the server."""
    logging.basicConfig(
        level=get_log_level(),
        format="%(asctime)s - %(levelname)s - %(message)s",
    )
