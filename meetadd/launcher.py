# meetadd/launcher.py
from typing import Tuple, Optional
from playwright.async_api import async_playwright, Browser, BrowserContext  # type: ignore

async def open_context(channel: str = "msedge", headless: bool = False,
                       storage_state: Optional[str] = None) -> Tuple[Browser, BrowserContext]:
    """
    Start Playwright, launch an installed Chromium-family browser (`channel`
    is "msedge", "chrome" or "chromium") and open one context.

    `storage_state` is the JSON saved by `meetadd --init`; None gives a
    logged-out context, which is what the login capture wants.
    The driver is stashed on the browser as `_pw` so the caller can stop it
    after closing the browser.
    """
    driver = await async_playwright().start()
    browser = await driver.chromium.launch(channel=channel, headless=headless)
    context = await browser.new_context(storage_state=storage_state or None)
    browser._pw = driver  # type: ignore[attr-defined]
    return browser, context
