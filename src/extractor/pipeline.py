"""
Page load + extraction pipeline for a single capture attempt.
"""

from src.crawler.session import CaptureSession
from src.extractor.content import extract_artifact
from src.snapshot.errors import ExtractionError, NavigationError
from src.snapshot.schemas import ContentArtifact
from src.utils.config import ExtractionConfig, get_settings
from src.utils.logging import get_logger

logger = get_logger(__name__)


class ExtractionPipeline:
    """Loads a URL inside a session and derives its content artifact."""

    def __init__(
        self,
        config: ExtractionConfig | None = None,
        *,
        wait_until: str | None = None,
    ):
        settings = get_settings()
        self._config = config or settings.extraction
        self._wait_until = wait_until or settings.capture.wait_until

    async def load(self, session: CaptureSession, url: str, timeout_ms: int) -> str:
        """Navigate and return the fully rendered markup.

        Waits for network quiescence or the timeout, whichever comes first;
        the timeout is a hard failure.

        Raises:
            NavigationError: Navigation timed out, raised, or the document
                could not be read.
        """
        page = session.page
        try:
            await page.goto(url, wait_until=self._wait_until, timeout=timeout_ms)
            return await page.content()
        except Exception as e:
            raise NavigationError(url, str(e) or type(e).__name__, timeout_ms=timeout_ms) from e

    async def extract(
        self,
        session: CaptureSession,
        url: str,
        timeout_ms: int,
    ) -> ContentArtifact:
        """Load url and extract its content artifact.

        Args:
            session: Open capture session.
            url: Page to capture.
            timeout_ms: Navigation timeout in milliseconds.

        Returns:
            ContentArtifact (never None once the document was retrieved).

        Raises:
            NavigationError: Page load failed.
            ExtractionError: Parsing or extraction raised.
        """
        html = await self.load(session, url, timeout_ms)
        logger.debug("Document retrieved", url=url, html_length=len(html))

        try:
            return extract_artifact(html, self._config, url=url)
        except Exception as e:
            raise ExtractionError(url, str(e) or type(e).__name__) from e
