"""
Content extraction for pagesnap.

Derives a ContentArtifact from rendered page markup:
1. readability-lxml isolates the main article (fragments shorter than the
   character threshold are rejected)
2. otherwise the trimmed text of <body> is used

The fallback guarantees an artifact for any document that loaded.
"""

import re
from dataclasses import dataclass

from bs4 import BeautifulSoup
from lxml import etree
from readability import Document
from readability.readability import Unparseable

from src.extractor.html_normalizer import compact_html
from src.snapshot.schemas import ContentArtifact
from src.utils.config import ExtractionConfig, get_settings
from src.utils.logging import get_logger

logger = get_logger(__name__)

# readability-lxml placeholder when a document has no <title>
_NO_TITLE = "[no-title]"

_NON_CONTENT_TAGS = ("script", "style", "noscript", "template")


@dataclass
class Article:
    """Primary content isolated by the readability extractor."""

    title: str
    content: str
    text_content: str

    @property
    def length(self) -> int:
        return len(self.text_content)


def get_document_title(soup: BeautifulSoup) -> str | None:
    """Declared <title> of a document, or None when absent or blank."""
    if soup.title is None or soup.title.string is None:
        return None
    title = soup.title.string.strip()
    return title or None


def get_body_text(soup: BeautifulSoup) -> str:
    """Trimmed text content of <body> without script/style payloads."""
    body = soup.body
    if body is None:
        return ""
    for tag in body.find_all(_NON_CONTENT_TAGS):
        tag.decompose()
    return body.get_text().strip()


def _normalize_text(text: str) -> str:
    text = re.sub(r"[ \t\r\f\v]+", " ", text)
    text = re.sub(r" ?\n[ \n]*\n", "\n\n", text)
    return text.strip()


def parse_article(
    html: str,
    *,
    char_threshold: int = 500,
    keep_classes: bool = False,
) -> Article | None:
    """Run readability extraction on a document.

    Args:
        html: Full document markup.
        char_threshold: Minimum characters of article text to accept.
        keep_classes: Keep class attributes in the article fragment.

    Returns:
        Article, or None when no fragment meets the threshold.

    Raises:
        Unparseable: readability failed on a non-empty document. Only an
            empty document (lxml "Document is empty") counts as no article.
    """
    doc = Document(html, retry_length=char_threshold)
    try:
        summary = doc.summary(html_partial=True)
    except Unparseable as e:
        # summary() wraps every internal error; the original is the context
        if not isinstance(e.__context__, etree.ParserError):
            raise
        logger.debug("Readability found an empty document", error=str(e))
        return None

    fragment = BeautifulSoup(summary, "html.parser")
    if not keep_classes:
        for tag in fragment.find_all(class_=True):
            del tag["class"]

    text = _normalize_text(fragment.get_text())
    if len(text) < char_threshold:
        logger.debug(
            "Readability article below threshold",
            length=len(text),
            char_threshold=char_threshold,
        )
        return None

    title = doc.short_title() or ""
    if title == _NO_TITLE:
        title = ""

    return Article(title=title.strip(), content=str(fragment), text_content=text)


def extract_artifact(
    html: str,
    config: ExtractionConfig | None = None,
    *,
    url: str | None = None,
) -> ContentArtifact:
    """Derive the content artifact for a rendered document.

    Args:
        html: Full document markup (page.content()).
        config: Extraction settings. Uses settings if None.
        url: Page URL, for log context only.

    Returns:
        ContentArtifact from the article, or from the body text fallback.
    """
    config = config or get_settings().extraction

    soup = BeautifulSoup(html, "html.parser")
    document_title = get_document_title(soup)

    article = parse_article(
        html,
        char_threshold=config.char_threshold,
        keep_classes=config.keep_classes,
    )

    if article is not None:
        content = compact_html(article.content) if config.compact_html else None
        artifact = ContentArtifact(
            title=article.title or document_title or config.fallback_title,
            text_content=article.text_content,
            length=article.length,
            content=content,
        )
        logger.info(
            "Article extracted",
            url=url,
            method="readability",
            length=artifact.length,
        )
        return artifact

    text = get_body_text(soup)
    artifact = ContentArtifact.from_text(document_title or config.fallback_title, text)
    logger.info(
        "Article extracted",
        url=url,
        method="body_fallback",
        length=artifact.length,
    )
    return artifact
