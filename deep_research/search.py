"""Firecrawl web search.

Firecrawl (v4 SDK, returns Pydantic models) is synchronous, so calls run
in a worker thread and are bounded by the configured timeout. Failures
are raised to the caller: a failed search is a failed branch, and a
missing key is a configuration error.

Every search returns a ``SearchResponse`` of ``SearchItem(url, content)``
where ``content`` is the scraped markdown when available.
"""

import asyncio
import logging
import os
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from .config import ConfigurationError

logger = logging.getLogger(__name__)

FIRECRAWL_MAX_RETRIES = int(os.environ.get("FIRECRAWL_MAX_RETRIES", "2"))
FIRECRAWL_BACKOFF_BASE = float(os.environ.get("FIRECRAWL_BACKOFF_BASE", "0.5"))

MAX_CONTENTS_PER_SEARCH = 3
MAX_CONTENT_CHARS = 150000

# errors that retrying cannot fix, or that retrying would make worse
_NO_RETRY_MARKERS = (
    "payment", "402", "401", "403", "insufficient", "unauthorized",
    "429", "rate limit", "quota",
)


@dataclass
class SearchItem:
    url: str
    content: str = ""
    title: str = ""


@dataclass
class SearchResponse:
    items: List[SearchItem] = field(default_factory=list)

    @property
    def urls(self) -> List[str]:
        return [item.url for item in self.items if item.url]


def _get_firecrawl(api_key: str):
    """Return a Firecrawl client for *api_key*."""
    if not api_key:
        raise ConfigurationError("Firecrawl API key is required (set FIRECRAWL_API_KEY)")
    from firecrawl import Firecrawl

    return Firecrawl(api_key=api_key)


def _retry(func, *args, deadline: Optional[float] = None, **kwargs):
    """Call *func* with backoff.

    *deadline* is a ``time.monotonic()`` value; no retry starts past it.
    """
    attempts = max(1, FIRECRAWL_MAX_RETRIES)
    for attempt in range(attempts):
        try:
            return func(*args, **kwargs)
        except Exception as exc:
            err_str = str(exc).lower()
            if any(k in err_str for k in _NO_RETRY_MARKERS):
                raise
            if attempt + 1 == attempts:
                raise
            delay = FIRECRAWL_BACKOFF_BASE * (2 ** attempt)
            if deadline is not None and time.monotonic() + delay >= deadline:
                logger.debug("Firecrawl retry skipped, deadline reached: %s", exc)
                raise
            time.sleep(delay)


# ── response normalisers ────────────────────────────────────────────

def _pydantic_to_dict(obj: Any) -> Any:
    """Recursively convert a Pydantic model (or list of them) to dicts."""
    if obj is None:
        return None
    if isinstance(obj, (str, int, float, bool)):
        return obj
    if isinstance(obj, dict):
        return {k: _pydantic_to_dict(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_pydantic_to_dict(item) for item in obj]
    if hasattr(obj, "model_dump"):
        return obj.model_dump()
    return obj


def _first(d: Dict[str, Any], keys: Sequence[str]) -> str:
    for key in keys:
        value = d.get(key)
        if value:
            return str(value).strip()
    return ""


def _to_item(d: Dict[str, Any]) -> Optional[SearchItem]:
    meta = d.get("metadata") if isinstance(d.get("metadata"), dict) else {}
    url = _first(d, ("url", "link", "href")) or _first(meta, ("sourceURL", "source_url", "url"))
    if not url:
        return None
    title = _first(d, ("title",)) or _first(meta, ("title",))
    content = _first(d, ("markdown", "content", "description", "snippet")) or _first(meta, ("description",))
    return SearchItem(url=url, content=content, title=title)


def normalise_search_response(result: Any) -> SearchResponse:
    """Turn a Firecrawl search result into a ``SearchResponse``.

    v4 returns ``SearchData`` with ``.web``/``.news`` lists; older shapes
    are plain dicts with a ``data`` list.
    """
    if result is None:
        return SearchResponse()

    raw_items: List[Any] = []
    if isinstance(result, dict):
        for key in ("data", "web", "news"):
            bucket = result.get(key)
            if isinstance(bucket, list):
                raw_items.extend(bucket)
    else:
        for attr in ("web", "news", "data"):
            bucket = getattr(result, attr, None)
            if bucket and isinstance(bucket, list):
                raw_items.extend(bucket)

    items: List[SearchItem] = []
    for entry in raw_items:
        d = _pydantic_to_dict(entry)
        if isinstance(d, dict):
            item = _to_item(d)
            if item is not None:
                items.append(item)

    logger.debug("Normalised search → %d items", len(items))
    return SearchResponse(items=items)


def build_contents(
    response: SearchResponse,
    max_items: int = MAX_CONTENTS_PER_SEARCH,
    max_chars: int = MAX_CONTENT_CHARS,
) -> str:
    """Join the first *max_items* non-empty contents, capped at *max_chars*."""
    contents = [item.content for item in response.items[:max_items] if item.content]
    total = "\n".join(contents)
    if len(total) > max_chars:
        total = total[:max_chars] + "..."
    return total


# ── public API ──────────────────────────────────────────────────────

def _search_sync(
    query: str,
    api_key: str,
    timeout_ms: int,
    formats: Sequence[str],
    limit: int,
    deadline: Optional[float] = None,
) -> SearchResponse:
    fc = _get_firecrawl(api_key)
    from firecrawl.v2.types import ScrapeOptions

    raw = _retry(
        fc.search,
        query,
        limit=limit,
        timeout=timeout_ms,
        scrape_options=ScrapeOptions(formats=list(formats)),
        deadline=deadline,
    )
    return normalise_search_response(raw)


async def search(
    query: str,
    *,
    api_key: str,
    timeout_ms: int = 15000,
    formats: Sequence[str] = ("markdown",),
    limit: int = 5,
) -> SearchResponse:
    """Search the web and scrape each hit.

    Raises ``ConfigurationError`` without a key, ``asyncio.TimeoutError``
    when the call outlives *timeout_ms* (plus retry headroom), and whatever
    Firecrawl raises otherwise.

    A worker thread cannot be killed, so an SDK call already in flight when
    the wait times out runs to completion in the background. The same
    deadline is handed to the retry loop, which starts no further attempts
    past it.
    """
    if not api_key:
        raise ConfigurationError("Firecrawl API key is required (set FIRECRAWL_API_KEY)")
    # the SDK timeout covers Firecrawl's own work; this one also covers retries
    budget = timeout_ms / 1000 * max(1, FIRECRAWL_MAX_RETRIES) + 5
    deadline = time.monotonic() + budget
    response = await asyncio.wait_for(
        asyncio.to_thread(_search_sync, query, api_key, timeout_ms, formats, limit, deadline),
        timeout=budget,
    )
    logger.info("Firecrawl → %d items for '%s'", len(response.items), query[:60])
    return response
