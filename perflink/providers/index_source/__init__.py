"""Live performer index sources (httpx + BeautifulSoup)."""

from perflink.providers.index_source.http_index_source import (
    HtmlIndexSource,
    JsonIndexSource,
    build_index_source,
)

__all__ = ["HtmlIndexSource", "JsonIndexSource", "build_index_source"]
