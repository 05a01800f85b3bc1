"""Font family resolution for the rendering surface.

The resolver turns a placeholder's font family into a Pillow font:

    1. System font names (Arial, Times New Roman, ...) are swapped for a
       visually similar webfont from SYSTEM_FONT_SUBSTITUTES. Lookup is
       case-insensitive. Any other name is used literally.
    2. The effective family is acquired through FontAcquisitionClient.
    3. The bytes are loaded into Pillow straight from memory, so no
       font file needs to exist on disk.

Acquisition never raises. A family that cannot be acquired resolves with
``available=False`` and drawing code falls back to Pillow's bundled
sans-serif font.

One resolver is meant to live for the whole process and be shared by
every render. Resolving the same key from many threads at once starts a
single download; the other callers wait on its Future. Distinct families
resolve in parallel through resolve_many().

Example:
    Resolve and load a substituted font::

        resolver = FontResolver()
        resolved = resolver.resolve('Arial')
        resolved.effective_family   # 'Roboto'
        font = resolver.get_font('Arial', 24)
"""

from __future__ import annotations

import io
import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Iterable, Tuple

from PIL import ImageFont

from .config import COMMON_FONTS, DEFAULT_WEIGHT, FALLBACK_FAMILY, SYSTEM_FONT_SUBSTITUTES, RenderConfig
from .font_client import FontAcquisitionClient, font_key
from .models import FontCacheEntry, ResolvedFont

logger = logging.getLogger(__name__)

# Size used to check that downloaded bytes load at all
PROBE_SIZE = 16

FontSpec = Tuple[str, int, bool]  # (family, weight, italic)


class FontResolver:
    """Resolve, acquire and cache fonts for the life of a process.

    Attributes:
        config: RenderConfig shared with the acquisition client.
        client: FontAcquisitionClient used for downloads.
    """

    def __init__(self, client: FontAcquisitionClient | None = None,
                 config: RenderConfig | None = None):
        if config is None:
            config = client.config if client is not None else RenderConfig()
        self.config = config
        self.client = client or FontAcquisitionClient(config)

        self._lock = threading.Lock()
        # key -> Future resolving to FontCacheEntry (kept) or None (dropped)
        self._entries: dict[str, Future] = {}
        self._failures: dict[str, float] = {}
        self._substitutions: dict[str, str] = {}
        self._fonts: dict[tuple, ImageFont.FreeTypeFont | ImageFont.ImageFont] = {}

    @staticmethod
    def substitute(family: str) -> str:
        """Return the webfont used in place of a system font name."""
        name = (family or '').strip()
        return SYSTEM_FONT_SUBSTITUTES.get(name.lower(), name)

    def effective_family(self, family: str) -> str:
        """Family that requests for ``family`` are served from."""
        with self._lock:
            recorded = self._substitutions.get((family or '').strip().lower())
        return recorded or self.substitute(family)

    def resolve(self, family: str, weight: int = DEFAULT_WEIGHT,
                italic: bool = False) -> ResolvedFont:
        """Make a family drawable, or report that it is not.

        Args:
            family: Requested family name from the placeholder.
            weight: Numeric weight.
            italic: Whether the italic variant is wanted.

        Returns:
            ResolvedFont; ``available`` is False when acquisition failed.
        """
        effective = self.substitute(family)
        if not effective:
            return ResolvedFont(family, FALLBACK_FAMILY, weight, italic, available=False)

        entry = self._acquire(effective, weight, italic)
        if entry is not None and effective != family.strip():
            with self._lock:
                self._substitutions[family.strip().lower()] = effective
            logger.debug("Font %r served as %r", family, effective)

        return ResolvedFont(family, effective, weight, italic, available=entry is not None)

    def _acquire(self, family: str, weight: int, italic: bool) -> FontCacheEntry | None:
        key = font_key(family, weight, italic)

        with self._lock:
            future = self._entries.get(key)
            owner = future is None
            if owner:
                failed_at = self._failures.get(key)
                if failed_at is not None and time.monotonic() - failed_at < self.config.failure_ttl:
                    return None
                future = Future()
                self._entries[key] = future

        if not owner:
            return future.result()

        entry = None
        try:
            entry = self._load(family, weight, italic)
        finally:
            # Waiters must always be released, even if loading raised
            with self._lock:
                if entry is None:
                    self._entries.pop(key, None)
                    self._failures[key] = time.monotonic()
                else:
                    self._failures.pop(key, None)
            future.set_result(entry)
        return entry

    def _load(self, family: str, weight: int, italic: bool) -> FontCacheEntry | None:
        try:
            data = self.client.fetch_font_binary(family, weight, italic)
        except Exception:
            logger.exception("Unexpected error acquiring font %s (%d)", family, weight)
            return None

        if data is None:
            logger.warning("Font %s (%d%s) unavailable, falling back to %s",
                           family, weight, ' italic' if italic else '', FALLBACK_FAMILY)
            return None

        try:
            ImageFont.truetype(io.BytesIO(data), PROBE_SIZE)
        except (OSError, ValueError) as e:
            logger.warning("Font %s (%d) could not be loaded: %s", family, weight, e)
            return None

        return FontCacheEntry(family, weight, italic, data)

    def resolve_many(self, specs: Iterable[FontSpec]) -> dict[FontSpec, ResolvedFont]:
        """Resolve several (family, weight, italic) specs concurrently.

        Duplicates are resolved once. Returns a dict keyed by spec.
        """
        unique = list(dict.fromkeys(specs))
        if len(unique) <= 1:
            return {spec: self.resolve(*spec) for spec in unique}

        workers = max(1, min(self.config.max_font_workers, len(unique)))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {spec: executor.submit(self.resolve, *spec) for spec in unique}
            return {spec: future.result() for spec, future in futures.items()}

    def preload(self, families: Iterable[str] | None = None) -> dict[FontSpec, ResolvedFont]:
        """Warm the cache for common families (regular weight)."""
        families = list(families) if families is not None else list(COMMON_FONTS)
        return self.resolve_many((family, DEFAULT_WEIGHT, False) for family in families)

    def load_font(self, resolved: ResolvedFont, size: float) -> ImageFont.FreeTypeFont | None:
        """Load a resolved family at a pixel size, or None if it is unavailable."""
        if not resolved.available:
            return None

        key = font_key(resolved.effective_family, resolved.weight, resolved.italic)
        with self._lock:
            future = self._entries.get(key)
            font = self._fonts.get((key, size))
        if font is not None:
            return font
        if future is None or not future.done() or future.result() is None:
            return None

        font = ImageFont.truetype(io.BytesIO(future.result().data), size)
        with self._lock:
            self._fonts.setdefault((key, size), font)
        return font

    def fallback_font(self, size: float) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
        """Pillow's bundled sans-serif font at ``size``."""
        cache_key = (FALLBACK_FAMILY, size)
        with self._lock:
            font = self._fonts.get(cache_key)
        if font is None:
            font = ImageFont.load_default(size=size)
            with self._lock:
                self._fonts.setdefault(cache_key, font)
        return font

    def get_font(self, family: str, size: float, weight: int = DEFAULT_WEIGHT,
                 italic: bool = False) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
        """Resolve and load a family, falling back instead of failing."""
        resolved = self.resolve(family, weight, italic)
        return self.load_font(resolved, size) or self.fallback_font(size)

    def reset(self) -> None:
        """Forget every resolved font, failure, and cached binary."""
        with self._lock:
            self._entries.clear()
            self._failures.clear()
            self._substitutions.clear()
            self._fonts.clear()
        self.client.clear_memory_cache()
