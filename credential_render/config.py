"""Shared configuration for the credential rendering engine.

This module centralizes the constants and tunables used by:
    - font_client.py (remote style-sheet and binary fetches)
    - font_resolver.py (system-font substitution, fallback, preload set)
    - surface.py / compositor.py (placeholder defaults, output format)

It also provides configure_logging() for hosts that do not already set
up logging themselves.

Example:
    Override the font fetch timeout and disable the disk cache::

        from credential_render.config import RenderConfig
        config = RenderConfig(fetch_timeout=2.0, scratch_dir=None)
"""

from __future__ import annotations

import logging
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

# Remote font API
CSS_API_URL = "https://fonts.googleapis.com/css2"

# Old browser signatures are served TrueType instead of WOFF2
FONT_USER_AGENT = 'Mozilla/5.0 (Windows NT 6.1; rv:60.0) Gecko/20100101 Firefox/60.0'

# HTTP timeout constants (seconds)
FETCH_TIMEOUT = 5.0
MAX_RETRIES = 2
RETRY_DELAY = 0.25

# Smallest byte count that can hold an sfnt header
MIN_FONT_BYTES = 12

# Seconds a failed acquisition is remembered before retrying
FAILURE_TTL = 60.0

MAX_FONT_WORKERS = 8

SCRATCH_DIR_NAME = "credential-render-fonts"

# Placeholder defaults
DEFAULT_FONT_SIZE = 16.0
DEFAULT_FONT_FAMILY = "Arial"
DEFAULT_COLOR = "#000000"
DEFAULT_ALIGN = "center"  # used when a placeholder sets no alignment
DEFAULT_WEIGHT = 400
BOLD_WEIGHT = 700

FALLBACK_FAMILY = "sans-serif"

OUTPUT_FORMAT = "PNG"
OUTPUT_MIME = "image/png"

# System font name (lowercase) -> visually similar webfont family
SYSTEM_FONT_SUBSTITUTES = {
    "arial": "Roboto",
    "helvetica": "Roboto",
    "helvetica neue": "Roboto",
    "times new roman": "Tinos",
    "times": "Tinos",
    "courier new": "Cousine",
    "courier": "Cousine",
    "verdana": "Open Sans",
    "segoe ui": "Open Sans",
    "georgia": "Gelasio",
    "garamond": "EB Garamond",
    "palatino": "Libre Baskerville",
    "palatino linotype": "Libre Baskerville",
    "book antiqua": "Libre Baskerville",
    "comic sans ms": "Comic Neue",
    "trebuchet ms": "Fira Sans",
    "impact": "Anton",
    "tahoma": "PT Sans",
    "century gothic": "Questrial",
    "calibri": "Carlito",
    "cambria": "Caladea",
    "lucida console": "Inconsolata",
    "brush script mt": "Dancing Script",
}

# Fonts worth warming at process start
COMMON_FONTS = ["Roboto", "Open Sans", "Poppins", "Inter", "Montserrat"]


def default_scratch_dir() -> Path:
    """Return the default on-disk font cache location under the temp dir."""
    return Path(tempfile.gettempdir()) / SCRATCH_DIR_NAME


@dataclass
class RenderConfig:
    """Configuration for font acquisition and rendering.

    Attributes:
        css_api_url: Style-sheet endpoint of the remote font API.
        user_agent: User-Agent sent with every font request.
        fetch_timeout: Per-request timeout in seconds.
        max_retries: Attempts per request for 429/5xx/connection errors.
        retry_delay: Base delay for exponential backoff between attempts.
        min_font_bytes: Downloads shorter than this are rejected.
        scratch_dir: Directory for the best-effort disk cache, or None to
            keep fonts in memory only.
        failure_ttl: Seconds a failed acquisition is not retried.
        max_font_workers: Thread count for concurrent font resolution.
        output_format: Pillow format name for rendered output.
        output_mime: MIME type matching output_format.
    """
    css_api_url: str = CSS_API_URL
    user_agent: str = FONT_USER_AGENT
    fetch_timeout: float = FETCH_TIMEOUT
    max_retries: int = MAX_RETRIES
    retry_delay: float = RETRY_DELAY
    min_font_bytes: int = MIN_FONT_BYTES
    scratch_dir: Path | None = field(default_factory=default_scratch_dir)
    failure_ttl: float = FAILURE_TTL
    max_font_workers: int = MAX_FONT_WORKERS
    output_format: str = OUTPUT_FORMAT
    output_mime: str = OUTPUT_MIME

    def __post_init__(self):
        if self.scratch_dir is not None:
            self.scratch_dir = Path(self.scratch_dir)


LOG_FORMAT = '%(asctime)s %(levelname)-8s [%(name)s] %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# Names of the handlers configure_logging() installs start with this
HANDLER_NAME_PREFIX = 'credential_render.'

# Third-party loggers are noisy at DEBUG
QUIET_LOGGERS = ('PIL', 'urllib3', 'requests')


def _own_handlers(logger_: logging.Logger) -> list[logging.Handler]:
    return [h for h in logger_.handlers
            if (h.get_name() or '').startswith(HANDLER_NAME_PREFIX)]


def configure_logging(level: str = 'INFO', log_file: str | None = None,
                      replace_handlers: bool = False) -> None:
    """Configure application-wide logging.

    Adds a console handler (and optionally a file handler) to the root
    logger. Handlers a host application already installed are kept
    unless ``replace_handlers`` is set. Handlers from an earlier call are
    always swapped out, so calling this twice does not duplicate output.

    Args:
        level: Log level string ('DEBUG', 'INFO', 'WARNING', 'ERROR').
        log_file: Optional path to log file. If None, logs to stderr only.
        replace_handlers: Remove every existing root handler first.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    own = _own_handlers(root_logger)
    stale = list(root_logger.handlers) if replace_handlers else own
    for handler in stale:
        root_logger.removeHandler(handler)
        if handler in own:
            handler.close()

    console_handler = logging.StreamHandler()
    console_handler.set_name(HANDLER_NAME_PREFIX + 'console')
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.set_name(HANDLER_NAME_PREFIX + 'file')
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.info("Logging configured: level=%s, file=%s, kept %d host handler(s)",
                level, log_file or 'stderr',
                len(root_logger.handlers) - len(_own_handlers(root_logger)))
