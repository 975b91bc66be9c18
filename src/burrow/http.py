"""Authenticated JSON-over-HTTP helper for the Burrow API."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable, Optional

import requests

from .errors import HTTPRequestError, ProtocolError

if TYPE_CHECKING:
    from .config import Config

logger = logging.getLogger(__name__)


class HTTPClient:
    """Sends JSON requests with a bearer token obtained over SSH.

    ``token_provider`` returns the current token; ``on_unauthorized`` is
    called when the server rejects it so the caller can drop its cache.
    """

    def __init__(
        self,
        config: "Config",
        token_provider: Callable[[], str],
        *,
        on_unauthorized: Optional[Callable[[], None]] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = config.http_base_url
        self._token_provider = token_provider
        self._on_unauthorized = on_unauthorized
        self.session = session or requests.Session()

    def _url(self, path: str) -> str:
        return f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"

    def authed_json_request(self, method: str, path: str, body: Any = None) -> Any:
        """Send ``body`` as JSON and return the decoded response, or None when empty."""
        headers = {
            "Authorization": f"Bearer {self._token_provider()}",
            "Content-Type": "application/json",
        }
        url = self._url(path)
        logger.debug("%s %s", method, url)
        try:
            response = self.session.request(method, url, json=body, headers=headers)
        except requests.RequestException as exc:
            raise HTTPRequestError(f"{method} {path} failed: {exc}") from exc

        if response.status_code >= 400:
            if response.status_code == 401 and self._on_unauthorized is not None:
                self._on_unauthorized()
            try:
                detail: object | None = response.json()
            except ValueError:
                detail = response.text
            raise HTTPRequestError(
                f"{method} {path} failed: {response.status_code}",
                status_code=response.status_code,
                body=detail,
            )

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise ProtocolError(f"{method} {path} returned invalid JSON") from exc
