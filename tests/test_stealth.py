"""
Tests for browser stealth utilities.

## Test Perspectives Table
| Case ID | Input / Precondition | Perspective (Equivalence / Boundary) | Expected Result | Notes |
|---------|----------------------|---------------------------------------|-----------------|-------|
| TC-SJS-01 | STEALTH_JS_TEMPLATE content | Equivalence – content | webdriver reads false | - |
| TC-SJS-02 | STEALTH_JS_TEMPLATE content | Equivalence – content | Removes Playwright markers | - |
| TC-SJS-03 | build_stealth_args | Equivalence – args | platform/languages from fingerprint | - |
| TC-SJS-04 | build_stealth_args | Equivalence – plugins | Non-empty plugin list | - |
| TC-SJS-05 | build_stealth_script | Equivalence – render | Placeholder replaced with JSON args | - |
| TC-SJS-06 | Two fingerprints | Equivalence – variation | Scripts differ by platform | - |
| TC-AS-01 | apply_stealth_to_context | Equivalence – install | add_init_script called with script | - |
| TC-AS-02 | add_init_script raises | Abnormal – propagation | Error propagates | - |
| TC-SA-01 | get_stealth_args | Equivalence – args | AutomationControlled disabled | - |
"""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.crawler.fingerprint import Fingerprint
from src.crawler.stealth import (
    DEFAULT_PLUGINS,
    STEALTH_JS_TEMPLATE,
    apply_stealth_to_context,
    build_stealth_args,
    build_stealth_script,
    get_stealth_args,
)


def _fingerprint(platform: str = "MacIntel", locale: str = "en-CA") -> Fingerprint:
    return Fingerprint(
        user_agent="Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) Chrome/129.0.0.0",
        platform=platform,
        viewport_width=1900,
        viewport_height=1070,
        locale=locale,
        timezone="Asia/Tokyo",
        color_scheme="dark",
    )


@pytest.mark.unit
class TestStealthJS:
    """Test the stealth init script template."""

    def test_template_sets_webdriver_false(self) -> None:
        """TC-SJS-01: navigator.webdriver is overridden to read false."""
        assert "webdriver" in STEALTH_JS_TEMPLATE
        assert "get: () => false" in STEALTH_JS_TEMPLATE
        assert "Object.defineProperty" in STEALTH_JS_TEMPLATE

    def test_template_removes_playwright_markers(self) -> None:
        """TC-SJS-02: Playwright globals are deleted."""
        assert "__playwright" in STEALTH_JS_TEMPLATE
        assert "__pwInitScripts" in STEALTH_JS_TEMPLATE

    def test_args_follow_fingerprint(self) -> None:
        """
        TC-SJS-03: platform and languages come from the fingerprint.

        // Given: a MacIntel fingerprint with locale en-CA
        // When:  build_stealth_args() is called
        // Then:  platform is MacIntel and languages are ["en", "en-CA"]
        """
        # Given
        fp = _fingerprint()

        # When
        args = build_stealth_args(fp)

        # Then
        assert args["platform"] == "MacIntel"
        assert args["languages"] == ["en", "en-CA"]

    def test_args_plugins_non_empty(self) -> None:
        """TC-SJS-04: plugin list is plausible and non-empty."""
        args = build_stealth_args(_fingerprint())

        assert len(args["plugins"]) == len(DEFAULT_PLUGINS) > 0
        assert all(p["name"] for p in args["plugins"])

    def test_script_embeds_json_args(self) -> None:
        """
        TC-SJS-05: rendered script carries the arguments as JSON.

        // Given: a fingerprint
        // When:  build_stealth_script() is called
        // Then:  the placeholder is gone and the JSON args are present
        """
        # Given
        fp = _fingerprint()

        # When
        script = build_stealth_script(fp)

        # Then
        assert "__STEALTH_ARGS__" not in script
        assert json.dumps(build_stealth_args(fp), ensure_ascii=False) in script

    def test_script_differs_per_fingerprint(self) -> None:
        """TC-SJS-06: platform patch is not a constant."""
        mac = build_stealth_script(_fingerprint(platform="MacIntel"))
        win = build_stealth_script(_fingerprint(platform="Win32"))

        assert mac != win
        assert '"Win32"' in win


@pytest.mark.unit
class TestApplyStealth:
    """Test installing the patch on a context."""

    @pytest.mark.asyncio
    async def test_installs_init_script(self) -> None:
        """
        TC-AS-01: the rendered script is registered as an init script.

        // Given: a mock browser context
        // When:  apply_stealth_to_context() is awaited
        // Then:  add_init_script is called once with the rendered script
        """
        # Given
        context = MagicMock()
        context.add_init_script = AsyncMock()
        fp = _fingerprint()

        # When
        await apply_stealth_to_context(context, fp)

        # Then
        context.add_init_script.assert_awaited_once_with(script=build_stealth_script(fp))

    @pytest.mark.asyncio
    async def test_install_failure_propagates(self) -> None:
        """TC-AS-02: a context that cannot be patched is not silently used."""
        context = MagicMock()
        context.add_init_script = AsyncMock(side_effect=RuntimeError("context closed"))

        with pytest.raises(RuntimeError, match="context closed"):
            await apply_stealth_to_context(context, _fingerprint())


@pytest.mark.unit
class TestStealthArgs:
    """Test Chromium launch arguments."""

    def test_disables_automation_controlled(self) -> None:
        """TC-SA-01: launch args hide the automation flag."""
        args = get_stealth_args()

        assert "--disable-blink-features=AutomationControlled" in args
        assert all(a.startswith("--") for a in args)
