"""HTML parser: selector content map, links, images and list detection."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable

from bs4 import BeautifulSoup
from soupsieve import SelectorSyntaxError
import trafilatura

from ..constants import DEFAULT_LIST_SELECTORS
from ..types import ContentSlot, ExtractedNode, FetchBackend, ImageRef, LinkRef, RenderedPage
from ..url import resolve_url


LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class HTMLPageParserConfig:
    """Config for HTML extraction."""

    use_trafilatura: bool = True
    min_paragraph_chars: int = 20
    max_paragraphs: int = 5
    keep_node_html: bool = True


class HTMLPageParser:
    """Turn one HTML document into a `RenderedPage`.

    With explicit selectors the content map has one slot per selector. Without
    them a default map is built (meta description, headings, leading
    paragraphs and the main text).
    """

    def __init__(self, config: HTMLPageParserConfig | None = None) -> None:
        self.config = config or HTMLPageParserConfig()

    def parse(
        self,
        *,
        url: str,
        html: str | bytes,
        final_url: str | None = None,
        status_code: int | None = 200,
        content_type: str | None = None,
        selectors: Iterable[str] = (),
        list_selectors: Iterable[str] = (),
        backend: FetchBackend = FetchBackend.REQUESTS,
        elapsed_ms: int | None = None,
    ) -> RenderedPage:
        base_url = final_url or url
        html_text = self._coerce_html_text(html)
        soup = BeautifulSoup(html_text, "lxml")

        selector_list = tuple(selectors)
        if selector_list:
            content = self.extract_selectors(soup, selector_list)
        else:
            content = self._default_content(soup, html_text)

        return RenderedPage(
            requested_url=url,
            final_url=final_url or url,
            status_code=status_code,
            content_type=content_type,
            title=self._extract_title(soup),
            links=self.extract_links(soup, base_url),
            images=self.extract_images(soup, base_url),
            list_links=self.extract_list_links(soup, base_url, list_selectors),
            content=content,
            backend=backend,
            elapsed_ms=elapsed_ms,
        )

    def extract_selectors(self, soup: BeautifulSoup, selectors: Iterable[str]) -> dict[str, ContentSlot]:
        """Fill one slot per selector; a malformed selector only fails its own slot."""

        content: dict[str, ContentSlot] = {}
        for selector in selectors:
            try:
                elements = soup.select(selector)
            except (SelectorSyntaxError, NotImplementedError, ValueError) as exc:
                LOGGER.warning("Invalid selector %r: %s", selector, exc)
                content[selector] = ContentSlot.of_error(f"{exc.__class__.__name__}: {exc}")
                continue

            nodes = [
                ExtractedNode(
                    text=element.get_text(" ", strip=True),
                    html=element.decode_contents() if self.config.keep_node_html else None,
                )
                for element in elements
            ]
            content[selector] = ContentSlot.of_nodes(nodes)
        return content

    @staticmethod
    def extract_links(soup: BeautifulSoup, base_url: str) -> list[LinkRef]:
        links: list[LinkRef] = []
        seen: set[str] = set()
        for anchor in soup.find_all("a", href=True):
            absolute = resolve_url(base_url, anchor.get("href"))
            if absolute is None or absolute in seen:
                continue
            seen.add(absolute)
            links.append(LinkRef(url=absolute, text=anchor.get_text(" ", strip=True)))
        return links

    @staticmethod
    def extract_images(soup: BeautifulSoup, base_url: str) -> list[ImageRef]:
        images: list[ImageRef] = []
        seen: set[str] = set()
        for img in soup.find_all("img"):
            src = img.get("src") or img.get("data-src")
            absolute = resolve_url(base_url, src)
            if absolute is None or absolute in seen:
                continue
            seen.add(absolute)
            images.append(ImageRef(src=absolute, alt=(img.get("alt") or "").strip()))
        return images

    @staticmethod
    def extract_list_links(
        soup: BeautifulSoup,
        base_url: str,
        list_selectors: Iterable[str] = (),
    ) -> list[str]:
        """Return deduplicated absolute links found inside list containers."""

        selectors = tuple(dict.fromkeys((*DEFAULT_LIST_SELECTORS, *list_selectors)))
        found: list[str] = []
        seen: set[str] = set()
        for selector in selectors:
            try:
                containers = soup.select(selector)
            except (SelectorSyntaxError, NotImplementedError, ValueError) as exc:
                LOGGER.warning("Invalid list selector %r: %s", selector, exc)
                continue
            for container in containers:
                for anchor in container.find_all("a", href=True):
                    absolute = resolve_url(base_url, anchor.get("href"))
                    if absolute is None or absolute in seen:
                        continue
                    seen.add(absolute)
                    found.append(absolute)
        return found

    def _default_content(self, soup: BeautifulSoup, html_text: str) -> dict[str, ContentSlot]:
        content: dict[str, ContentSlot] = {}

        meta = soup.find("meta", attrs={"name": "description"})
        content["meta_description"] = ContentSlot.of_scalar(
            (meta.get("content") or "").strip() if meta else ""
        )
        for level in ("h1", "h2", "h3"):
            content[level] = ContentSlot.of_nodes(
                [ExtractedNode(text=el.get_text(" ", strip=True)) for el in soup.find_all(level)]
            )

        paragraphs = [
            text
            for text in (el.get_text(" ", strip=True) for el in soup.find_all("p"))
            if len(text) > self.config.min_paragraph_chars
        ]
        content["paragraphs"] = ContentSlot.of_nodes(
            [ExtractedNode(text=text) for text in paragraphs[: self.config.max_paragraphs]]
        )
        content["text"] = ContentSlot.of_scalar(self._main_text(soup, html_text))
        return content

    def _main_text(self, soup: BeautifulSoup, html_text: str) -> str:
        if self.config.use_trafilatura:
            try:
                extracted = trafilatura.extract(
                    html_text,
                    output_format="txt",
                    include_comments=False,
                    include_tables=True,
                    include_images=False,
                    deduplicate=True,
                )
            except Exception as exc:
                LOGGER.debug("Trafilatura extraction failed: %s", exc)
                extracted = None
            if extracted and extracted.strip():
                return extracted.strip()

        body = soup.body or soup
        return re.sub(r"\s+", " ", body.get_text(" ", strip=True)).strip()

    @staticmethod
    def _coerce_html_text(html: str | bytes) -> str:
        if isinstance(html, bytes):
            return html.decode("utf-8", errors="replace")
        return html

    @staticmethod
    def _extract_title(soup: BeautifulSoup) -> str:
        if soup.title and soup.title.get_text(strip=True):
            return soup.title.get_text(" ", strip=True)
        heading = soup.find(["h1", "h2"])
        if heading:
            return heading.get_text(" ", strip=True)
        return ""


__all__ = [
    "HTMLPageParser",
    "HTMLPageParserConfig",
]
