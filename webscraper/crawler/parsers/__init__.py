"""Parser package exports."""

from .html_parser import HTMLPageParser, HTMLPageParserConfig

__all__ = [
    "HTMLPageParser",
    "HTMLPageParserConfig",
]
