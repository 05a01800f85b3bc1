"""Font acquisition from a remote CSS font API.

This module downloads font binaries the way a browser would: it requests
a style sheet for ``family:weight`` from the CSS API, picks a TrueType
(or OpenType) ``url(...)`` out of the response and fetches it.

Note:
    The User-Agent header is set to an old browser signature so the API
    advertises TTF files instead of WOFF2. When only WOFF/WOFF2 URLs come
    back, the client tries the same URL with a ``.ttf`` suffix; if that
    fails too the acquisition fails. There is no format transcoding.

Every failure (network error, empty style sheet, no usable URL, bad
binary) is logged and reported as ``None``. Nothing in here raises past
fetch_font_binary().

Successful downloads are kept in memory for the life of the process and,
when a scratch directory is configured and writable, on disk as well.

Example:
    Fetch a font and load it with Pillow::

        import io
        from PIL import ImageFont
        from credential_render.font_client import FontAcquisitionClient

        client = FontAcquisitionClient()
        data = client.fetch_font_binary('Dancing Script', 700)
        if data:
            font = ImageFont.truetype(io.BytesIO(data), 48)
"""

from __future__ import annotations

import logging
import os
import re
import tempfile
import threading
import time
from pathlib import Path

import requests

from .config import DEFAULT_WEIGHT, RenderConfig
from .models import FontCacheEntry

logger = logging.getLogger(__name__)

# url(...) with an optional format(...) hint right after it
_URL_PATTERN = re.compile(
    r"""url\(\s*['"]?(https?://[^'")\s]+)['"]?\s*\)"""
    r"""(?:\s*format\(\s*['"]?([\w-]+)['"]?\s*\))?"""
)

DIRECT_FORMATS = ('truetype', 'opentype')
DIRECT_SUFFIXES = ('.ttf', '.otf')
COMPRESSED_SUFFIXES = ('.woff2', '.woff')

# sfnt magic numbers FreeType loads directly
SFNT_MAGIC = (b'\x00\x01\x00\x00', b'OTTO', b'true', b'ttcf')
WOFF_MAGIC = (b'wOFF', b'wOF2')


def normalize_font_name(family: str) -> str:
    """Turn a family name into a filesystem-safe key ('Open Sans' -> 'Open-Sans')."""
    name = re.sub(r'\s+', '-', family.strip())
    return re.sub(r'[^a-zA-Z0-9-]', '', name)


def font_key(family: str, weight: int = DEFAULT_WEIGHT, italic: bool = False) -> str:
    """Cache key for a family/weight/style triple."""
    key = f"{normalize_font_name(family)}-{weight}"
    return f"{key}-italic" if italic else key


def _url_path(url: str) -> str:
    return url.split('?', 1)[0].split('#', 1)[0].lower()


def select_font_url(css: str) -> str | None:
    """Pick the URL of a directly loadable font out of a style sheet.

    Prefers URLs flagged ``format('truetype')``/``format('opentype')`` or
    ending in .ttf/.otf. Otherwise rewrites the first WOFF2/WOFF URL to a
    .ttf URL on the chance the server hosts both.

    Args:
        css: Style-sheet text returned by the CSS API.

    Returns:
        The chosen URL, or None if the sheet has no font URLs.
    """
    matches = _URL_PATTERN.findall(css)
    if not matches:
        return None

    for url, fmt in matches:
        if fmt.lower() in DIRECT_FORMATS or _url_path(url).endswith(DIRECT_SUFFIXES):
            return url

    for url, _fmt in matches:
        path = _url_path(url)
        for suffix in COMPRESSED_SUFFIXES:
            if path.endswith(suffix):
                base, sep, query = url.partition('?')
                return base[:-len(suffix)] + '.ttf' + sep + query

    return None


class FontAcquisitionClient:
    """Download font binaries from a CSS font API.

    Attributes:
        config: RenderConfig with endpoint, timeout, retry and cache settings.
        session: HTTP session for making requests.
        network_fetches: Number of binary downloads attempted over the
            network (cache hits excluded).
    """

    def __init__(self, config: RenderConfig | None = None,
                 session: requests.Session | None = None):
        self.config = config or RenderConfig()
        self.session = session or requests.Session()
        self.session.headers.update({
            'User-Agent': self.config.user_agent,
            'Accept': 'text/css,*/*;q=0.1',
        })

        self._memory_cache: dict[str, FontCacheEntry] = {}
        self._lock = threading.Lock()
        self.network_fetches = 0

    def request_with_retry(self, method: str, url: str, **kwargs) -> requests.Response:
        """Make an HTTP request with retry logic for transient failures.

        Handles 429 rate limit responses, 5xx server errors and connection
        errors with exponential backoff. Any other response is returned
        as-is for the caller to check.

        Args:
            method: HTTP method ('get', 'post', etc.).
            url: The URL to request.
            **kwargs: Additional arguments passed to requests.Session.request().

        Returns:
            The requests.Response object.

        Raises:
            requests.RequestException: If all retries are exhausted.
        """
        kwargs.setdefault('timeout', self.config.fetch_timeout)
        max_retries = max(1, self.config.max_retries)
        base_delay = self.config.retry_delay
        last_exception = None
        response = None

        for attempt in range(max_retries):
            try:
                response = self.session.request(method, url, **kwargs)
            except (requests.ConnectionError, requests.Timeout) as e:
                last_exception = e
                delay = base_delay * (2 ** attempt)
                logger.warning(
                    "Connection error on %s: %s (attempt %d/%d)",
                    url, e, attempt + 1, max_retries
                )
                if attempt + 1 < max_retries:
                    time.sleep(delay)
                continue

            if response.status_code == 429 or response.status_code >= 500:
                delay = base_delay * (2 ** attempt)
                logger.warning(
                    "HTTP %d on %s (attempt %d/%d)",
                    response.status_code, url, attempt + 1, max_retries
                )
                if attempt + 1 < max_retries:
                    time.sleep(delay)
                continue

            return response

        if last_exception and response is None:
            raise last_exception
        raise requests.RequestException(f"Max retries exceeded for {url}")

    def get_with_retry(self, url: str, **kwargs) -> requests.Response:
        """Convenience method for GET requests with retry logic."""
        return self.request_with_retry('GET', url, **kwargs)

    def stylesheet_url(self, family: str, weight: int = DEFAULT_WEIGHT,
                       italic: bool = False) -> str:
        """Build the CSS API URL for one family/weight/style."""
        family_encoded = family.strip().replace(' ', '+')
        if italic:
            axis = f"ital,wght@1,{weight}"
        else:
            axis = f"wght@{weight}"
        return f"{self.config.css_api_url}?family={family_encoded}:{axis}&display=swap"

    def fetch_stylesheet(self, family: str, weight: int = DEFAULT_WEIGHT,
                         italic: bool = False) -> str | None:
        """Fetch the style sheet for a font, or None on any failure."""
        url = self.stylesheet_url(family, weight, italic)
        try:
            resp = self.get_with_retry(url)
            resp.raise_for_status()
        except requests.RequestException as e:
            logger.warning("Failed to fetch style sheet for %s (%d): %s", family, weight, e)
            return None

        if not resp.text.strip():
            logger.warning("Empty style sheet for %s (%d)", family, weight)
            return None
        return resp.text

    def download_binary(self, url: str) -> bytes | None:
        """Fetch a font file and check that it looks loadable."""
        try:
            resp = self.get_with_retry(url)
        except requests.RequestException as e:
            logger.warning("Font download failed for %s: %s", url, e)
            return None

        if resp.status_code != 200:
            logger.warning("Font download returned HTTP %d for %s", resp.status_code, url)
            return None

        content = resp.content
        if len(content) < self.config.min_font_bytes:
            logger.warning("Font download too small (%d bytes) from %s", len(content), url)
            return None

        magic = content[:4]
        if magic in WOFF_MAGIC:
            logger.warning("Server sent a compressed web font for %s", url)
            return None
        if magic not in SFNT_MAGIC:
            # Pillow reports the real problem at load time
            logger.warning("Downloaded file from %s may not be a valid TTF font", url)

        return content

    def fetch_font_binary(self, family: str, weight: int = DEFAULT_WEIGHT,
                          italic: bool = False) -> bytes | None:
        """Get the raw font file for a family, from cache or the network.

        Lookup order is the in-memory cache, the scratch directory, then
        the CSS API. Downloads are stored in both caches.

        Args:
            family: Font family name as the API knows it (e.g. 'Roboto').
            weight: Numeric weight (400 regular, 700 bold).
            italic: Request the italic variant.

        Returns:
            The font file bytes, or None if the font could not be acquired.
        """
        key = font_key(family, weight, italic)

        with self._lock:
            entry = self._memory_cache.get(key)
        if entry is not None:
            logger.debug("Memory cache hit: %s", key)
            return entry.data

        data = self._read_disk_cache(key)
        if data is None:
            data = self._download(family, weight, italic)
            if data is None:
                return None
            self._write_disk_cache(key, data)

        with self._lock:
            self._memory_cache[key] = FontCacheEntry(family, weight, italic, data)
        return data

    def _download(self, family: str, weight: int, italic: bool) -> bytes | None:
        with self._lock:
            self.network_fetches += 1

        css = self.fetch_stylesheet(family, weight, italic)
        if css is None:
            return None

        url = select_font_url(css)
        if not url:
            logger.warning("No usable font URL in style sheet for %s (%d)", family, weight)
            return None

        logger.debug("Downloading %s (%d) from %s", family, weight, url)
        data = self.download_binary(url)
        if data is not None:
            logger.info("Acquired font %s (%d%s), %d bytes", family, weight,
                        ' italic' if italic else '', len(data))
        return data

    def _cache_path(self, key: str) -> Path | None:
        if self.config.scratch_dir is None:
            return None
        return self.config.scratch_dir / f"{key}.ttf"

    def _read_disk_cache(self, key: str) -> bytes | None:
        path = self._cache_path(key)
        if path is None:
            return None
        try:
            data = path.read_bytes()
        except OSError:
            return None
        if len(data) < self.config.min_font_bytes:
            return None
        logger.debug("Disk cache hit: %s", path)
        return data

    def _write_disk_cache(self, key: str, data: bytes) -> None:
        """Best-effort write; a read-only or missing scratch dir is not an error."""
        path = self._cache_path(key)
        if path is None:
            return
        tmp_name = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            # Unique temp name then rename, so readers never see a partial file
            with tempfile.NamedTemporaryFile(dir=path.parent, prefix=f".{key}-",
                                             suffix='.tmp', delete=False) as tmp:
                tmp_name = tmp.name
                tmp.write(data)
            os.replace(tmp_name, path)
        except OSError as e:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    logger.debug("Could not remove %s", tmp_name)
            logger.debug("Font disk cache unavailable (%s): %s", path.parent, e)

    def cached_entries(self) -> list[FontCacheEntry]:
        """Snapshot of the in-memory binary cache."""
        with self._lock:
            return list(self._memory_cache.values())

    def clear_memory_cache(self) -> None:
        with self._lock:
            self._memory_cache.clear()
            self.network_fetches = 0
