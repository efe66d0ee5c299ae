"""
Browser fingerprint randomization for pagesnap.

Each capture attempt presents a freshly drawn browser identity so that a
block decision keyed on one identity does not carry over to the retry.
Identities are drawn from small fixed pools of realistic values and are
kept internally consistent: the platform always matches the user agent,
and the reported language list is derived from the locale.
"""

import random
from dataclasses import dataclass, field
from typing import Any

from src.utils.config import BrowserConfig, get_settings

# (user agent, navigator.platform) pairs; platform must stay paired with its UA
USER_AGENT_POOL: tuple[tuple[str, str], ...] = (
    (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/129.0.0.0 Safari/537.36",
        "Win32",
    ),
    (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/129.0.0.0 Safari/537.36",
        "MacIntel",
    ),
    (
        "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/129.0.0.0 Safari/537.36",
        "Linux x86_64",
    ),
    (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/129.0.0.0 Safari/537.36 Edg/129.0.0.0",
        "Win32",
    ),
)

LOCALES: tuple[str, ...] = ("en-US", "en-GB", "en-CA")
TIMEZONES: tuple[str, ...] = ("America/New_York", "Europe/London", "Asia/Tokyo")
COLOR_SCHEMES: tuple[str, ...] = ("light", "dark")


@dataclass(frozen=True)
class Fingerprint:
    """Synthetic browser identity used for a single capture attempt.

    Attributes:
        user_agent: User-Agent header and navigator.userAgent value.
        platform: navigator.platform value paired with the user agent.
        viewport_width: Viewport width in pixels.
        viewport_height: Viewport height in pixels.
        locale: BCP 47 locale (e.g. "en-GB").
        timezone: IANA timezone id.
        color_scheme: "light" or "dark".
    """

    user_agent: str
    platform: str
    viewport_width: int
    viewport_height: int
    locale: str
    timezone: str
    color_scheme: str

    @property
    def languages(self) -> list[str]:
        """navigator.languages value derived from the locale."""
        primary = self.locale.split("-")[0]
        if primary == self.locale:
            return [self.locale]
        return [primary, self.locale]

    @property
    def viewport(self) -> dict[str, int]:
        """Viewport in the shape Playwright expects."""
        return {"width": self.viewport_width, "height": self.viewport_height}

    def to_log_dict(self) -> dict[str, Any]:
        """Compact representation for log events."""
        return {
            "user_agent": self.user_agent[:50],
            "platform": self.platform,
            "viewport": f"{self.viewport_width}x{self.viewport_height}",
            "locale": self.locale,
            "timezone": self.timezone,
            "color_scheme": self.color_scheme,
        }


@dataclass
class FingerprintGenerator:
    """Draws independent fingerprints from the fixed pools.

    Stateless apart from its random source; pass a seeded
    ``random.Random`` to make generation reproducible.
    """

    config: BrowserConfig | None = None
    rng: random.Random = field(default_factory=random.Random)

    def __post_init__(self) -> None:
        if self.config is None:
            self.config = get_settings().browser

    def generate(self) -> Fingerprint:
        """Generate a new fingerprint.

        Viewport dimensions are jittered around the configured baseline
        (default 1920 ± 50 by 1080 ± 30) so attempts do not share a single
        canonical signature.
        """
        assert self.config is not None  # Set in __post_init__
        user_agent, platform = self.rng.choice(USER_AGENT_POOL)

        width_jitter = self.config.max_width_jitter
        height_jitter = self.config.max_height_jitter
        viewport_width = self.config.viewport_width + self.rng.randint(
            -width_jitter, max(-width_jitter, width_jitter - 1)
        )
        viewport_height = self.config.viewport_height + self.rng.randint(
            -height_jitter, max(-height_jitter, height_jitter - 1)
        )

        return Fingerprint(
            user_agent=user_agent,
            platform=platform,
            viewport_width=viewport_width,
            viewport_height=viewport_height,
            locale=self.rng.choice(LOCALES),
            timezone=self.rng.choice(TIMEZONES),
            color_scheme=self.rng.choice(COLOR_SCHEMES),
        )
