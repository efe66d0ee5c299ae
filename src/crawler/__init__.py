"""
pagesnap crawler module.

Provides fingerprint randomization, the stealth init script and
isolated browser sessions for page capture.
"""

from src.crawler.fingerprint import Fingerprint, FingerprintGenerator
from src.crawler.session import (
    BrowserHandle,
    BrowserLauncher,
    CaptureSession,
    SessionFactory,
)
from src.crawler.stealth import (
    apply_stealth_to_context,
    build_stealth_script,
    get_stealth_args,
)

__all__ = [
    # Fingerprint
    "Fingerprint",
    "FingerprintGenerator",
    # Session
    "BrowserHandle",
    "BrowserLauncher",
    "CaptureSession",
    "SessionFactory",
    # Stealth
    "apply_stealth_to_context",
    "build_stealth_script",
    "get_stealth_args",
]
