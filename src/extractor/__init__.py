"""
Content extraction module for pagesnap.

Provides page loading, readability extraction with a body-text
fallback, and HTML compaction.
"""

from src.extractor.content import Article, extract_artifact, parse_article
from src.extractor.html_normalizer import compact_html
from src.extractor.pipeline import ExtractionPipeline

__all__ = [
    "Article",
    "ExtractionPipeline",
    "compact_html",
    "extract_artifact",
    "parse_article",
]
