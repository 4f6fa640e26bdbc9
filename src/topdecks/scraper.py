# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Page operations against the deck site.

Each operation opens its own browser + page scope (see browser_session) so a
failure in one call never leaks a browser into the next:

- fetch_top_items: listing page -> ranked items (all-or-nothing)
- capture_region: deck page -> PNG of the deck list region
- fetch_item_details: deck page -> card breakdown, or an "unavailable" record
- check_site_health: site root -> True iff HTTP 200, never raises
"""

from __future__ import annotations

import logging
from pathlib import Path
from urllib.parse import urlparse

from . import PLAYER_NOT_REPORTED, CardEntry, ItemDetails, RankedItem
from .browser_session import navigate, open_browser, open_page, wait_for_region
from .config import AppConfig
from .errors import CaptureError, ExtractionError, SaveVerificationError, TopDecksError

logger = logging.getLogger(__name__)

# Static JS, parameterised through evaluate() args.
_LISTING_ROWS_JS = """([rowSelector, limit]) => Array.from(document.querySelectorAll(rowSelector))
  .slice(0, limit)
  .map(row => {
    const link = row.querySelector('a');
    const cells = row.querySelectorAll('td');
    const cellText = (el) => (el && el.textContent ? el.textContent.trim() : '');
    return {
      title: cellText(link),
      href: link ? (link.getAttribute('href') || '') : '',
      player: cellText(cells[1]),
    };
  })"""

_CARDS_JS = """([containerSelector]) => {
  const container = document.querySelector(containerSelector);
  if (!container) return null;
  return Array.from(container.querySelectorAll('.card')).map(card => {
    const name = card.querySelector('.card-name');
    const count = card.querySelector('.card-count');
    return {
      name: name && name.textContent ? name.textContent.trim() : '',
      count: count && count.textContent ? count.textContent.trim() : '',
    };
  });
}"""

_LOSSY_FORMATS = frozenset({"jpeg"})


# ── Pure helpers ─────────────────────────────────────────────────────


def collapse_whitespace(text: str | None) -> str:
    """Single-line form of scraped text: inner runs of whitespace become one space."""
    return " ".join((text or "").split())


def absolute_url(href: str, base_url: str) -> str:
    """Resolve a listing href against the site origin; absolute URLs pass through."""
    href = (href or "").strip()
    if urlparse(href).scheme in ("http", "https"):
        return href
    base = urlparse(base_url)
    if href.startswith("//"):
        return f"{base.scheme}:{href}"
    origin = f"{base.scheme}://{base.netloc}"
    if not href:
        return origin
    return f"{origin}/{href.lstrip('/')}"


def rows_to_items(rows: list[dict], limit: int, base_url: str) -> list[RankedItem]:
    """Turn raw listing rows into at most *limit* RankedItems, rank = row order."""
    if limit <= 0:
        return []
    items = []
    for index, row in enumerate(rows[:limit]):
        rank = index + 1
        items.append(
            RankedItem(
                title=collapse_whitespace(row.get("title")) or f"Deck {rank}",
                url=absolute_url(row.get("href") or "", base_url),
                position=rank,
                player=collapse_whitespace(row.get("player")) or PLAYER_NOT_REPORTED,
            )
        )
    return items


def screenshot_options(path: Path, image_type: str = "png", quality: int | None = None) -> dict:
    """Keyword args for ElementHandle.screenshot.

    ``quality`` is only forwarded for lossy formats; for PNG it is a no-op
    (Playwright rejects quality with PNG).
    """
    options: dict = {"path": str(path), "type": image_type}
    if quality is not None and image_type in _LOSSY_FORMATS:
        options["quality"] = quality
    return options


# ── Operations ───────────────────────────────────────────────────────


async def fetch_top_items(limit: int = 3, *, config: AppConfig | None = None) -> list[RankedItem]:
    """Read the first *limit* rows of the deck listing.

    Raises:
        ExtractionError: on any navigation, wait or extraction failure. The
            underlying error is chained and its kind is kept in ``cause_kind``.
    """
    config = config or AppConfig()
    if limit <= 0:
        return []
    browser_config = config.browser_config()
    logger.info("Fetching top %d decks from %s", limit, config.listing_url)

    try:
        async with open_browser(browser_config) as browser, open_page(browser, browser_config) as page:
            await navigate(
                page,
                config.listing_url,
                timeout_ms=browser_config.navigation_timeout_ms,
                wait_until=browser_config.wait_until,
            )
            await wait_for_region(page, config.listing_ready_selector, timeout_ms=browser_config.selector_timeout_ms)
            rows = await page.evaluate(_LISTING_ROWS_JS, [config.row_selector, limit])
    except Exception as exc:
        logger.error("Failed to fetch decks: %s", exc)
        raise ExtractionError(f"Failed to fetch decks: {exc}") from exc

    if not isinstance(rows, list):
        raise ExtractionError(f"Unexpected listing payload: {type(rows).__name__}")

    items = rows_to_items(rows, limit, config.base_url)
    logger.info("Found %d decks", len(items))
    return items


async def capture_region(url: str, file_name: str, *, config: AppConfig | None = None) -> Path:
    """Screenshot the deck list region of *url* into ``screenshots_dir / file_name``.

    Raises:
        NavigationTimeoutError / NavigationError: page did not load.
        SelectorTimeoutError: region never appeared.
        CaptureError: region absent or the screenshot call failed.
        SaveVerificationError: screenshot returned but no file on disk.
    """
    config = config or AppConfig()
    browser_config = config.browser_config()
    logger.info("Capturing screenshot: %s", file_name)

    try:
        config.screenshots_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise CaptureError(f"Cannot create screenshots directory {config.screenshots_dir}: {exc}") from exc
    path = config.screenshots_dir / file_name

    try:
        async with open_browser(browser_config) as browser, open_page(browser, browser_config) as page:
            await navigate(
                page,
                url,
                timeout_ms=browser_config.navigation_timeout_ms,
                wait_until=browser_config.wait_until,
            )
            await wait_for_region(page, config.region_selector, timeout_ms=browser_config.selector_timeout_ms)
            element = await page.query_selector(config.region_selector)
            if element is None:
                raise CaptureError(f"Selector not found: {config.region_selector}")
            await element.screenshot(**screenshot_options(path, "png", config.screenshot_quality))

            if not path.is_file():
                raise SaveVerificationError(f"Screenshot was not saved: {path}")
    except TopDecksError as exc:
        logger.error("Failed to capture %s: %s", url, exc)
        raise
    except Exception as exc:
        logger.error("Failed to capture %s: %s", url, exc)
        raise CaptureError(f"Failed to capture screenshot: {exc}") from exc

    logger.info("Screenshot saved: %s", path)
    return path


async def fetch_item_details(url: str, *, config: AppConfig | None = None) -> ItemDetails:
    """Read the card list of a deck page. Never raises; failures give ``available=False``."""
    config = config or AppConfig()
    browser_config = config.browser_config()
    logger.info("Fetching deck details: %s", url)

    try:
        async with open_browser(browser_config) as browser, open_page(browser, browser_config) as page:
            await navigate(
                page,
                url,
                timeout_ms=browser_config.navigation_timeout_ms,
                wait_until=browser_config.wait_until,
            )
            raw = await page.evaluate(_CARDS_JS, [config.region_selector])
    except Exception as exc:
        logger.error("Failed to fetch deck details for %s: %s", url, exc)
        return ItemDetails.unavailable(url, str(exc))

    if raw is None:
        return ItemDetails.unavailable(url, f"Deck list not found ({config.region_selector})")
    cards = tuple(
        CardEntry(name=collapse_whitespace(c.get("name")), count=collapse_whitespace(c.get("count"))) for c in raw
    )
    return ItemDetails(url=url, cards=cards)


async def check_site_health(*, config: AppConfig | None = None) -> bool:
    """True iff the site root answers with exactly HTTP 200."""
    config = config or AppConfig()
    browser_config = config.browser_config()
    try:
        async with open_browser(browser_config) as browser, open_page(browser, browser_config) as page:
            response = await navigate(
                page,
                config.base_url,
                timeout_ms=browser_config.health_timeout_ms,
                wait_until=browser_config.wait_until,
            )
            status = response.status if response is not None else None
    except Exception as exc:
        logger.warning("Site is not reachable: %s", exc)
        return False
    logger.info("Health check %s -> %s", config.base_url, status)
    return status == 200
