from __future__ import annotations

import re
import time
from dataclasses import dataclass, field
from typing import Sequence

import httpx
from bs4 import BeautifulSoup

from investigator.config import settings
from investigator.services import logger as log_service
from investigator.tools.interfaces import ExtractResult
from investigator.tools.web_utils import absolute_url, extract_domain, is_valid_url

MAX_LINKS = 50
MAX_IMAGES = 20


@dataclass
class ExtractedContent:
    url: str
    title: str
    text: str
    method: str
    links: list[str] = field(default_factory=list)
    images: list[str] = field(default_factory=list)
    meta: dict[str, str] = field(default_factory=dict)


def _normalize_text(text: str) -> str:
    text = text.replace("\xa0", " ")
    text = re.sub(r"\r\n?", "\n", text)
    text = re.sub(r"[ \t]+", " ", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def _truncate(text: str, max_chars: int) -> str:
    if max_chars <= 0 or len(text) <= max_chars:
        return text
    return text[:max_chars] + "..."


def _extract_with_trafilatura(raw_html: str) -> str:
    import trafilatura

    extracted = trafilatura.extract(raw_html, output_format="txt")
    if not isinstance(extracted, str):
        return ""
    return _normalize_text(extracted)


def _collect_unique(values: list[str | None], limit: int) -> list[str]:
    seen: set[str] = set()
    collected: list[str] = []
    for value in values:
        if not value or value in seen:
            continue
        seen.add(value)
        collected.append(value)
        if len(collected) >= limit:
            break
    return collected


def extract_main_content(url: str, raw_html: str, *, max_chars: int | None = None) -> ExtractedContent:
    """Pull title, readable text, outbound links, images and meta tags out of a page."""
    target_chars = max_chars if max_chars is not None else int(settings.extractor_max_page_chars)
    soup = BeautifulSoup(raw_html, "html.parser")

    title = _normalize_text(soup.title.string) if soup.title and soup.title.string else ""
    links = _collect_unique(
        [absolute_url(url, a.get("href", "")) for a in soup.find_all("a", href=True)],
        MAX_LINKS,
    )
    images = _collect_unique(
        [absolute_url(url, img.get("src", "")) for img in soup.find_all("img", src=True)],
        MAX_IMAGES,
    )
    meta: dict[str, str] = {}
    for tag in soup.find_all("meta"):
        key = tag.get("name") or tag.get("property")
        value = tag.get("content")
        if key in ("description", "author", "og:title", "og:description", "article:published_time") and value:
            meta[key] = _normalize_text(value)

    text = _extract_with_trafilatura(raw_html)
    method = "trafilatura"
    if not text:
        for node in soup(["script", "style", "noscript"]):
            node.decompose()
        text = _normalize_text(soup.get_text("\n"))
        method = "raw"

    return ExtractedContent(
        url=url,
        title=title or meta.get("og:title", ""),
        text=_truncate(text, target_chars),
        method=method,
        links=links,
        images=images,
        meta=meta,
    )


class HttpContentExtractor:
    """Fetches each URL with its own request; one failure never affects the others."""

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None):
        self._transport = transport

    async def _extract_one(self, client: httpx.AsyncClient, url: str) -> ExtractResult:
        if not is_valid_url(url):
            return ExtractResult.failure(url, "Invalid URL")
        try:
            response = await client.get(url)
        except httpx.HTTPError as exc:
            return ExtractResult.failure(url, f"{type(exc).__name__}: {exc}")
        if response.status_code >= 400:
            return ExtractResult.failure(url, f"HTTP {response.status_code}: {response.reason_phrase}")

        content_type = response.headers.get("content-type", "")
        if "html" not in content_type and "text" not in content_type:
            return ExtractResult.failure(url, f"Unsupported content type: {content_type or 'unknown'}")

        extracted = extract_main_content(str(response.url), response.text)
        if not extracted.text:
            return ExtractResult.failure(url, "No content extracted")
        return ExtractResult(
            url=url,
            success=True,
            title=extracted.title,
            content=extracted.text,
            links=extracted.links,
            images=extracted.images,
            metadata={
                **extracted.meta,
                "final_url": str(response.url),
                "status_code": response.status_code,
                "domain": extract_domain(str(response.url)),
                "extraction_method": extracted.method,
            },
        )

    async def extract(self, urls: Sequence[str]) -> list[ExtractResult]:
        results: list[ExtractResult] = []
        async with httpx.AsyncClient(
            timeout=settings.extract_timeout_seconds,
            follow_redirects=True,
            headers={"User-Agent": settings.extract_user_agent},
            transport=self._transport,
        ) as client:
            for url in urls:
                t0 = time.monotonic()
                try:
                    result = await self._extract_one(client, url)
                except Exception as exc:
                    result = ExtractResult.failure(url, f"Extraction failed: {exc}")
                log_service.log_tool_call(
                    tool="extract",
                    operation="http",
                    status="success" if result.success else "error",
                    duration_ms=int((time.monotonic() - t0) * 1000),
                    details={"url": url},
                    error=result.error,
                )
                results.append(result)
        return results
