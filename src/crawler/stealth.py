"""
Browser stealth utilities for pagesnap.

Implements basic anti-bot detection measures:
- navigator.webdriver reads as false
- Plausible, non-empty navigator.plugins
- navigator.languages derived from the session locale
- navigator.platform matching the session user agent

The patch is parameterised by the session fingerprint. Values are never
re-sampled inside the page, so the identity seen by page scripts matches
the identity presented in request headers.
"""

import json
from typing import TYPE_CHECKING, Any

from src.crawler.fingerprint import Fingerprint
from src.utils.logging import get_logger

if TYPE_CHECKING:
    from playwright.async_api import BrowserContext

logger = get_logger(__name__)


# =============================================================================
# Stealth JavaScript Injection
# =============================================================================

# Function body receives a single `args` object built by build_stealth_args()
STEALTH_JS_TEMPLATE = """
((args) => {
    Object.defineProperty(navigator, 'webdriver', {
        get: () => false,
        configurable: true
    });

    Object.defineProperty(navigator, 'plugins', {
        get: () => {
            const plugins = args.plugins.map((p) => ({ ...p }));
            plugins.item = (i) => plugins[i];
            plugins.namedItem = (name) => plugins.find((p) => p.name === name);
            plugins.refresh = () => {};
            return plugins;
        },
        configurable: true
    });

    Object.defineProperty(navigator, 'languages', {
        get: () => args.languages.slice(),
        configurable: true
    });

    Object.defineProperty(navigator, 'platform', {
        get: () => args.platform,
        configurable: true
    });

    delete window.__playwright;
    delete window.__pwInitScripts;
})(__STEALTH_ARGS__);
"""

DEFAULT_PLUGINS: tuple[dict[str, str], ...] = (
    {
        "name": "PDF Viewer",
        "filename": "internal-pdf-viewer",
        "description": "Portable Document Format",
    },
    {
        "name": "Chrome PDF Viewer",
        "filename": "internal-pdf-viewer",
        "description": "Portable Document Format",
    },
)


def build_stealth_args(fingerprint: Fingerprint) -> dict[str, Any]:
    """Build the argument object passed into the stealth patch.

    Args:
        fingerprint: Identity chosen for the session.

    Returns:
        JSON-serializable dict with platform, languages and plugins.
    """
    return {
        "platform": fingerprint.platform,
        "languages": fingerprint.languages,
        "plugins": [dict(p) for p in DEFAULT_PLUGINS],
    }


def build_stealth_script(fingerprint: Fingerprint) -> str:
    """Render the stealth init script for a fingerprint.

    Args:
        fingerprint: Identity chosen for the session.

    Returns:
        Self-invoking JavaScript source suitable for add_init_script().
    """
    args_json = json.dumps(build_stealth_args(fingerprint), ensure_ascii=False)
    return STEALTH_JS_TEMPLATE.replace("__STEALTH_ARGS__", args_json)


async def apply_stealth_to_context(
    context: "BrowserContext",
    fingerprint: Fingerprint,
) -> None:
    """Install the stealth patch on a browser context.

    Must run before any page of the context navigates so that the very
    first page script already sees the patched navigator. Errors propagate
    to the caller: a session without the patch is not used.

    Args:
        context: Playwright browser context.
        fingerprint: Identity chosen for the session.
    """
    await context.add_init_script(script=build_stealth_script(fingerprint))
    logger.debug(
        "Stealth script applied to context",
        platform=fingerprint.platform,
        languages=fingerprint.languages,
    )


def get_stealth_args() -> list[str]:
    """Get Chromium launch arguments that reduce automation detection.

    Returns:
        List of command-line arguments.
    """
    return [
        # Disable automation-controlled flag
        "--disable-blink-features=AutomationControlled",
        # Disable infobars (e.g., "Chrome is being controlled by automated software")
        "--disable-infobars",
        "--disable-dev-shm-usage",
        "--disable-extensions",
        "--disable-background-networking",
        "--disable-sync",
        "--disable-translate",
    ]
