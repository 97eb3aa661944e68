"""httpx-backed performer index sources.

Two flavours share one fetch path:

- :class:`JsonIndexSource` -- the endpoint returns JSON; names are read from
  a configured field (or the body itself when it is a list).
- :class:`HtmlIndexSource` -- the endpoint returns an HTML page; names are
  the text of the elements matching a configured CSS selector.

Both raise :class:`~perflink.utils.errors.SourceUnavailableError` for any
network failure, timeout or non-2xx response.  Inter-request delays are
enforced by the source resolver, which owns the per-source schedule.
The ``httpx.AsyncClient`` is injected for testability.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import Any
from urllib.parse import quote

import httpx
from bs4 import BeautifulSoup

from perflink.config.pipeline_config import SourceConfig, SourceKind
from perflink.interfaces.index_source import IPerformerIndexSource
from perflink.utils.errors import ConfigurationError, SourceUnavailableError
from perflink.utils.logging import get_logger

_USER_AGENT = "perflink/0.1.0 (performer index resolver)"


class _HttpIndexSource(IPerformerIndexSource):
    """Shared fetch logic; subclasses implement :meth:`_extract_names`."""

    def __init__(self, config: SourceConfig, http_client: httpx.AsyncClient) -> None:
        self._config = config
        self._http = http_client
        self._logger = get_logger(__name__)

    def _build_url(self, code: str) -> str:
        return self._config.url_template.replace("{code}", quote(code, safe=""))

    async def _fetch(self, code: str) -> httpx.Response:
        url = self._build_url(code)
        headers = {"User-Agent": _USER_AGENT}
        try:
            response = await self._http.get(
                url,
                headers=headers,
                timeout=self._config.timeout_seconds,
                follow_redirects=True,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._logger.warning(
                "index_http_error",
                source=self._config.name,
                url=url,
                status=exc.response.status_code,
            )
            raise SourceUnavailableError(
                f"HTTP {exc.response.status_code} for {url}",
                provider_name=self._config.name,
            ) from exc
        except httpx.HTTPError as exc:
            self._logger.warning(
                "index_request_failed", source=self._config.name, url=url, error=str(exc)
            )
            raise SourceUnavailableError(
                str(exc) or type(exc).__name__, provider_name=self._config.name
            ) from exc
        return response

    @abstractmethod
    def _extract_names(self, response: httpx.Response) -> list[str]:
        """Pull raw name strings out of a successful response."""

    # -- IPerformerIndexSource implementation --------------------------------

    async def lookup(self, code: str) -> list[str]:
        response = await self._fetch(code)
        names = [n for n in (s.strip() for s in self._extract_names(response)) if n]
        self._logger.debug(
            "index_lookup_complete", source=self._config.name, code=code, names=len(names)
        )
        return names

    def get_source_name(self) -> str:
        return self._config.name

    def is_available(self) -> bool:
        return self._config.is_live


class JsonIndexSource(_HttpIndexSource):
    """Index answering with JSON: a list of names, or an object holding one."""

    def _extract_names(self, response: httpx.Response) -> list[str]:
        try:
            payload: Any = response.json()
        except ValueError as exc:
            raise SourceUnavailableError(
                "response is not valid JSON", provider_name=self._config.name
            ) from exc
        if self._config.json_field and isinstance(payload, dict):
            payload = payload.get(self._config.json_field, [])
        if isinstance(payload, str):
            return [payload]
        if not isinstance(payload, list):
            return []
        return [item for item in payload if isinstance(item, str)]


class HtmlIndexSource(_HttpIndexSource):
    """Index answering with an HTML page; names picked by CSS selector."""

    def _extract_names(self, response: httpx.Response) -> list[str]:
        soup = BeautifulSoup(response.text, "html.parser")
        return [el.get_text(strip=True) for el in soup.select(self._config.name_selector)]


def build_index_source(config: SourceConfig, http_client: httpx.AsyncClient) -> IPerformerIndexSource:
    """Instantiate the adapter for a live source.

    Raises:
        ConfigurationError: If *config* describes a cache-only source.
    """
    if config.kind == SourceKind.JSON:
        return JsonIndexSource(config, http_client)
    if config.kind == SourceKind.HTML:
        return HtmlIndexSource(config, http_client)
    raise ConfigurationError(
        f"source {config.name!r} is cache-only and has no live endpoint",
        provider_name=config.name,
    )
