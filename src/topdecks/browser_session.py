# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Scoped Playwright sessions: one browser per operation, one page inside it.

Both scopes are async context managers and release their resource on every
exit path (return, exception, cancellation). Release failures are logged and
swallowed so they never mask the operation's own result::

    async with open_browser(config) as browser, open_page(browser, config) as page:
        await navigate(page, url, timeout_ms=config.navigation_timeout_ms)
"""

from __future__ import annotations

import asyncio
import logging
import sys
from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass

from playwright.async_api import (
    Browser,
    ElementHandle,
    Page,
    Playwright,
    Response,
    async_playwright,
)
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from .errors import (
    BrowserLaunchError,
    NavigationError,
    NavigationTimeoutError,
    ResourceReleaseError,
    SelectorTimeoutError,
)

logger = logging.getLogger(__name__)

DEFAULT_VIEWPORT = {"width": 1920, "height": 1080}

DEFAULT_USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"


@dataclass(frozen=True)
class BrowserConfig:
    """Browser launch and timing configuration."""

    headless: bool = True
    viewport_width: int = DEFAULT_VIEWPORT["width"]
    viewport_height: int = DEFAULT_VIEWPORT["height"]
    user_agent: str = DEFAULT_USER_AGENT
    navigation_timeout_ms: int = 30000
    selector_timeout_ms: int = 15000
    health_timeout_ms: int = 15000
    wait_until: str = "networkidle"


# ── Chromium auto-install ─────────────────────────────────────────

INSTALL_TIMEOUT_S = 300
_STDERR_TAIL_LINES = 5

_install_lock = asyncio.Lock()
_install_result: bool | None = None


async def _run_chromium_install() -> bool:
    logger.info("Chromium executable missing, installing it with Playwright (timeout %ds)", INSTALL_TIMEOUT_S)
    try:
        proc = await asyncio.create_subprocess_exec(
            sys.executable,
            "-m",
            "playwright",
            "install",
            "chromium",
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as exc:
        logger.warning("Could not start the Chromium installer: %s", exc)
        return False

    try:
        async with asyncio.timeout(INSTALL_TIMEOUT_S):
            _, stderr = await proc.communicate()
    except TimeoutError:
        proc.kill()
        await proc.wait()
        logger.warning("Chromium install killed after %ds", INSTALL_TIMEOUT_S)
        return False

    if proc.returncode != 0:
        tail = (stderr or b"").decode(errors="replace").strip().splitlines()[-_STDERR_TAIL_LINES:]
        logger.warning("Chromium install exited with %d: %s", proc.returncode, " | ".join(tail))
        return False
    logger.info("Chromium installed")
    return True


async def _auto_install_chromium() -> bool:
    """Install Chromium at most once per process.

    Callers arriving while the install runs wait for it and share its result.
    """
    global _install_result  # noqa: PLW0603
    async with _install_lock:
        if _install_result is None:
            _install_result = await _run_chromium_install()
        return _install_result


def chromium_launch_args() -> list[str]:
    """Chromium flags for running headless inside containers."""
    return [
        "--no-sandbox",
        "--disable-setuid-sandbox",
        "--disable-dev-shm-usage",
        "--disable-accelerated-2d-canvas",
        "--no-first-run",
        "--no-zygote",
        "--disable-gpu",
    ]


async def _launch_browser(playwright: Playwright, config: BrowserConfig) -> Browser:
    """Launch Chromium, auto-installing on first 'executable not found' error."""
    args = chromium_launch_args()
    try:
        return await playwright.chromium.launch(headless=config.headless, args=args)
    except Exception as exc:
        if not ("executable doesn't exist" in str(exc).lower() and await _auto_install_chromium()):
            raise BrowserLaunchError(f"Could not launch Chromium: {exc}") from exc
    try:
        return await playwright.chromium.launch(headless=config.headless, args=args)
    except Exception as exc:
        raise BrowserLaunchError(f"Could not launch Chromium after install: {exc}") from exc


async def release(resource: str, close: Callable[[], Awaitable[object]]) -> bool:
    """Best-effort close. Logs a ResourceReleaseError on failure, never raises.

    Returns True when the resource closed cleanly.
    """
    try:
        await close()
        return True
    except Exception as exc:
        err = ResourceReleaseError(f"Failed to close {resource}: {exc}")
        logger.warning("%s", err, exc_info=exc)
        return False


# ── Scopes ────────────────────────────────────────────────────────


@asynccontextmanager
async def open_browser(config: BrowserConfig | None = None) -> AsyncGenerator[Browser, None]:
    """Launch one Chromium instance for the duration of the block."""
    config = config or BrowserConfig()
    playwright = await async_playwright().start()
    try:
        browser = await _launch_browser(playwright, config)
    except BaseException:
        await release("playwright", playwright.stop)
        raise
    logger.debug("Browser launched (headless=%s)", config.headless)
    try:
        yield browser
    finally:
        await release("browser", browser.close)
        await release("playwright", playwright.stop)
        logger.debug("Browser closed")


@asynccontextmanager
async def open_page(browser: Browser, config: BrowserConfig | None = None) -> AsyncGenerator[Page, None]:
    """Open one isolated context + page with the fixed viewport and user agent."""
    config = config or BrowserConfig()
    context = await browser.new_context(
        viewport={"width": config.viewport_width, "height": config.viewport_height},
        user_agent=config.user_agent,
    )
    try:
        page = await context.new_page()
        try:
            yield page
        finally:
            await release("page", page.close)
    finally:
        await release("browser context", context.close)


# ── Page helpers ──────────────────────────────────────────────────


async def navigate(
    page: Page,
    url: str,
    *,
    timeout_ms: int,
    wait_until: str = "networkidle",
) -> Response | None:
    """page.goto with Playwright errors mapped onto the navigation error variants."""
    try:
        return await page.goto(url, wait_until=wait_until, timeout=timeout_ms)
    except PlaywrightTimeoutError as exc:
        raise NavigationTimeoutError(f"Navigation to {url} timed out after {timeout_ms}ms", url=url) from exc
    except PlaywrightError as exc:
        raise NavigationError(f"Navigation to {url} failed: {exc}", url=url) from exc


async def wait_for_region(page: Page, selector: str, *, timeout_ms: int) -> ElementHandle | None:
    """Wait until *selector* is present; a timeout becomes SelectorTimeoutError."""
    try:
        return await page.wait_for_selector(selector, timeout=timeout_ms)
    except PlaywrightTimeoutError as exc:
        raise SelectorTimeoutError(
            f"Selector {selector!r} not found within {timeout_ms}ms",
            selector=selector,
        ) from exc
