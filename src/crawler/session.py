"""
Browser process and isolated session management for pagesnap.

A capture call launches one headless Chromium process (BrowserHandle) and
opens one isolated context + page per attempt (CaptureSession). Each
context is configured with the attempt's fingerprint and receives the
stealth patch before any page is created.
"""

from typing import TYPE_CHECKING, Any

from src.crawler.fingerprint import Fingerprint
from src.crawler.stealth import apply_stealth_to_context, get_stealth_args
from src.utils.config import BrowserConfig, get_settings
from src.utils.logging import get_logger

if TYPE_CHECKING:
    from playwright.async_api import Browser, BrowserContext, Page, Playwright

logger = get_logger(__name__)


class BrowserHandle:
    """A running browser process plus the Playwright driver that owns it."""

    def __init__(self, browser: "Browser", playwright: "Playwright | None" = None):
        self.browser = browser
        self._playwright = playwright
        self._closed = False

    @property
    def is_closed(self) -> bool:
        return self._closed

    async def new_context(self, **options: Any) -> "BrowserContext":
        """Create a new isolated browser context."""
        return await self.browser.new_context(**options)

    async def close(self) -> None:
        """Close the browser and stop the driver. Idempotent, never raises."""
        if self._closed:
            return
        self._closed = True

        try:
            await self.browser.close()
        except Exception as e:
            logger.warning("Failed to close browser", error=str(e))

        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except Exception as e:
                logger.warning("Failed to stop Playwright", error=str(e))
            self._playwright = None

        logger.debug("Browser closed")


class BrowserLauncher:
    """Launches headless Chromium through Playwright."""

    def __init__(self, config: BrowserConfig | None = None):
        self._config = config or get_settings().browser

    def launch_args(self) -> list[str]:
        """Command-line arguments for the browser process."""
        args = list(self._config.launch_args)
        if self._config.stealth_args:
            args.extend(a for a in get_stealth_args() if a not in args)
        return args

    async def launch(self) -> BrowserHandle:
        """Start Playwright and launch a browser process.

        Returns:
            BrowserHandle owning both the browser and the driver.
        """
        try:
            from playwright.async_api import async_playwright
        except ImportError as e:
            raise RuntimeError("Playwright not installed") from e

        playwright = await async_playwright().start()
        try:
            browser = await playwright.chromium.launch(
                headless=self._config.headless,
                args=self.launch_args(),
                ignore_default_args=["--enable-automation"],
            )
        except BaseException:
            await playwright.stop()
            raise

        logger.info("Browser launched", headless=self._config.headless)
        return BrowserHandle(browser, playwright)


class CaptureSession:
    """One isolated browser context and its page, scoped to one attempt."""

    def __init__(
        self,
        context: "BrowserContext",
        page: "Page",
        fingerprint: Fingerprint,
    ):
        self.context = context
        self.page = page
        self.fingerprint = fingerprint
        self._closed = False

    @property
    def is_closed(self) -> bool:
        return self._closed

    async def close(self) -> None:
        """Close page and context. Best-effort: failures are logged, not raised."""
        if self._closed:
            return
        self._closed = True

        try:
            await self.page.close()
        except Exception as e:
            logger.warning("Failed to close page", error=str(e))

        try:
            await self.context.close()
        except Exception as e:
            logger.warning("Failed to close browser context", error=str(e))


class SessionFactory:
    """Opens fingerprinted, stealth-patched sessions on a running browser."""

    def __init__(self, config: BrowserConfig | None = None):
        self._config = config or get_settings().browser

    def context_options(self, fingerprint: Fingerprint) -> dict[str, Any]:
        """Playwright new_context() options for a fingerprint."""
        return {
            "user_agent": fingerprint.user_agent,
            "viewport": fingerprint.viewport,
            "locale": fingerprint.locale,
            "timezone_id": fingerprint.timezone,
            "color_scheme": fingerprint.color_scheme,
            "permissions": list(self._config.permissions),
            "bypass_csp": self._config.bypass_csp,
            "ignore_https_errors": self._config.ignore_https_errors,
        }

    async def open(self, browser: BrowserHandle, fingerprint: Fingerprint) -> CaptureSession:
        """Open an isolated session configured with a fingerprint.

        Errors propagate to the caller. A context that was created before
        the failure is closed first so it cannot outlive the attempt.

        Args:
            browser: Running browser process.
            fingerprint: Identity for this session.

        Returns:
            CaptureSession ready for exactly one page load.
        """
        context = await browser.new_context(**self.context_options(fingerprint))
        try:
            await apply_stealth_to_context(context, fingerprint)
            page = await context.new_page()
        except BaseException:
            try:
                await context.close()
            except Exception as e:
                logger.warning("Failed to close browser context", error=str(e))
            raise

        return CaptureSession(context, page, fingerprint)
