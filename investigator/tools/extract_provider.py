from __future__ import annotations

from investigator.config import settings
from investigator.tools.content_extractor import HttpContentExtractor
from investigator.tools.interfaces import ExtractTool
from investigator.tools.tavily_extract import TavilyExtractor


def get_extractor() -> ExtractTool:
    """Build the extraction tool selected by EXTRACT_PROVIDER."""
    provider = settings.extract_provider.lower().strip()
    if provider == "http":
        return HttpContentExtractor()
    if provider == "tavily":
        return TavilyExtractor()
    raise ValueError(f"Unsupported EXTRACT_PROVIDER: {settings.extract_provider}")
