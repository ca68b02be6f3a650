"""
WOM Registry Transport
======================

JSON-over-HTTP POST client for the registry API.  Every request carries an
explicit ``(connect, read)`` timeout; any status other than ``200 OK`` is a
:class:`TransportError`.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

import requests

from womcrypt import WomError

logger = logging.getLogger(__name__)

CREATE_PATH = "/api/v1/voucher/create"
VERIFY_PATH = "/api/v1/voucher/verify"

DEFAULT_TIMEOUT: Tuple[float, float] = (10.0, 30.0)


class TransportError(WomError):
    """The registry could not be reached or answered with a non-success status."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        url: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.url = url


class Transport:
    """Blocking JSON client bound to one registry base URL."""

    def __init__(
        self,
        base_url: str,
        timeout: Tuple[float, float] = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.setdefault("Accept", "application/json")

    @property
    def base_url(self) -> str:
        return self._base_url

    def url_for(self, path: str) -> str:
        return self._base_url + "/" + path.lstrip("/")

    def post_json(
        self,
        path: str,
        body: Dict[str, Any],
        *,
        expect_body: bool = True,
    ) -> Optional[Dict[str, Any]]:
        """
        POST *body* as JSON to *path*.

        Returns the decoded JSON response, or ``None`` when the response is
        empty or *expect_body* is false.

        Raises
        ------
        TransportError
            On connection failure, timeout, a status other than 200, or a
            response body that is not JSON.
        """
        url = self.url_for(path)
        logger.debug("POST %s", url)
        try:
            resp = self._session.post(url, json=body, timeout=self._timeout)
        except requests.Timeout as exc:
            raise TransportError(f"Request to {url} timed out.", url=url) from exc
        except requests.RequestException as exc:
            raise TransportError(f"Request to {url} failed: {exc}", url=url) from exc

        if resp.status_code != 200:
            raise TransportError(
                f"{url} answered HTTP {resp.status_code}.",
                status_code=resp.status_code,
                url=url,
            )
        if not expect_body or not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as exc:
            raise TransportError(
                f"{url} returned a body that is not JSON.",
                status_code=resp.status_code,
                url=url,
            ) from exc

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> "Transport":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
