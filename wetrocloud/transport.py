"""HTTP transport for the WetroCloud API."""

from typing import Any, Dict, Mapping, Optional, Set, Union
import logging
import asyncio
import json

import aiohttp
from aiohttp import ClientTimeout, FormData

from .errors import APIError, RequestCancelledError, ResponseDecodeError


logger = logging.getLogger(__name__)

GET = "GET"
POST = "POST"
PUT = "PUT"
DELETE = "DELETE"
REQUEST_METHODS = frozenset({GET, POST, PUT, DELETE})

REFERRER_HEADER = "X-Referrer"

RequestBody = Union[Mapping[str, Any], FormData]


class _CancelScope:
    """Exchanges that a single ``Transport.cancel`` call aborts together."""

    def __init__(self) -> None:
        self.aborted = False
        self.tasks: Set["asyncio.Future[Any]"] = set()
        self.responses: Set[aiohttp.ClientResponse] = set()

    def track_response(self, response: aiohttp.ClientResponse) -> None:
        # Streams released by their consumer are closed already.
        self.responses = {r for r in self.responses if not r.closed}
        self.responses.add(response)

    def abort(self) -> None:
        self.aborted = True
        for task in list(self.tasks):
            task.cancel()
        for response in list(self.responses):
            response.close()
        self.responses.clear()


class Transport:
    """Performs one HTTP exchange per call against the versioned API URL."""

    def __init__(self, api_url: str, api_key: str = "", referrer: Optional[str] = None) -> None:
        """Initialize the transport.

        Args:
            api_url: Scheme, host and version prefix every path is appended to
            api_key: Secret sent as ``Authorization: Token <api_key>``; omitted when empty
            referrer: Value of the referrer marker header, if any
        """
        self.api_url = api_url.rstrip("/")
        self._api_key = api_key
        self._referrer = referrer
        self.session: Optional[aiohttp.ClientSession] = None
        self._scope = _CancelScope()

    async def __aenter__(self) -> "Transport":
        """Async context manager entry."""
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()

    async def _ensure_session(self) -> None:
        """Ensure HTTP session is created."""
        if self.session is None or self.session.closed:
            # No total or connect timeout: callers layer their own if they need one.
            self.session = aiohttp.ClientSession(timeout=ClientTimeout())
            logger.debug("HTTP session created")

    async def close(self) -> None:
        """Close the HTTP session."""
        if self.session:
            await self.session.close()
            self.session = None
            logger.debug("HTTP session closed")

    @property
    def in_flight(self) -> int:
        """Number of exchanges the next ``cancel`` would abort."""
        return len(self._scope.tasks)

    def _build_headers(self, data: Optional[RequestBody], headers: Optional[Mapping[str, str]]) -> Dict[str, str]:
        request_headers: Dict[str, str] = {}
        # aiohttp computes the multipart boundary itself
        if not isinstance(data, FormData):
            request_headers["Content-Type"] = "application/json"
        if self._api_key:
            request_headers["Authorization"] = f"Token {self._api_key}"
        if self._referrer:
            request_headers[REFERRER_HEADER] = self._referrer
        if headers:
            request_headers.update(headers)
        return request_headers

    async def request(
        self,
        path: str,
        method: str,
        data: Optional[RequestBody] = None,
        headers: Optional[Mapping[str, str]] = None,
        stream: bool = False
    ) -> Any:
        """Send one request and return its decoded body.

        Args:
            path: Operation path relative to the API URL
            method: HTTP method (GET, POST, PUT, DELETE)
            data: JSON-serializable mapping or multipart ``FormData``
            headers: Extra headers overriding the defaults
            stream: Return the open response instead of its decoded body

        Returns:
            Decoded JSON body, or the open ``aiohttp.ClientResponse`` when streaming

        Raises:
            APIError: For non-2xx responses
            RequestCancelledError: If ``cancel`` aborted the request
            ResponseDecodeError: If a body is not valid JSON
            aiohttp.ClientError: For connection failures
        """
        method = method.upper()
        if method not in REQUEST_METHODS:
            raise ValueError(f"Unsupported HTTP method: {method}")

        await self._ensure_session()

        url = f"{self.api_url}/{path.lstrip('/')}"
        scope = self._scope
        task = asyncio.ensure_future(self._send(url, method, data, headers, stream, scope))
        scope.tasks.add(task)
        try:
            return await task
        except asyncio.CancelledError:
            if scope.aborted and task.cancelled():
                logger.info(f"{method} {url} aborted by cancel")
                raise RequestCancelledError() from None
            raise
        finally:
            scope.tasks.discard(task)

    async def _send(
        self,
        url: str,
        method: str,
        data: Optional[RequestBody],
        headers: Optional[Mapping[str, str]],
        stream: bool,
        scope: _CancelScope
    ) -> Any:
        kwargs: Dict[str, Any] = {"headers": self._build_headers(data, headers)}
        if method != GET and data is not None:
            kwargs["data"] = data if isinstance(data, FormData) else json.dumps(data)

        logger.debug(f"Making {method} request to {url}")

        response = await self.session.request(method, url, **kwargs)

        if not 200 <= response.status < 300:
            try:
                raise await self._error_from_response(response)
            finally:
                response.release()

        if stream:
            scope.track_response(response)
            return response

        try:
            response_text = await response.text()
        finally:
            response.release()

        if not response_text:
            return {}
        try:
            return json.loads(response_text)
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse JSON response: {e}")
            raise ResponseDecodeError(f"Invalid JSON response: {e}", status_code=response.status)

    async def _error_from_response(self, response: aiohttp.ClientResponse) -> APIError:
        """Normalize a non-2xx response into an ``APIError``."""
        response_text = await response.text()
        status_text = response.reason or ""

        try:
            body = json.loads(response_text) if response_text else {}
        except json.JSONDecodeError as e:
            logger.error(f"API error {response.status} with undecodable body: {response_text[:200]}")
            raise ResponseDecodeError(
                f"Invalid JSON in error response (HTTP {response.status}): {e}",
                status_code=response.status
            )

        if not isinstance(body, dict):
            body = {"detail": body}

        error_message = body.get("message")
        if not isinstance(error_message, str) or not error_message:
            error_message = body.get("detail")
        if not isinstance(error_message, str) or not error_message:
            error_message = f"HTTP {response.status} {status_text}".strip()

        logger.error(f"API error {response.status}: {error_message}")
        return APIError(
            message=error_message,
            status_code=response.status,
            status_text=status_text,
            response_data={**body, "status": response.status, "statusText": status_text}
        )

    def cancel(self) -> None:
        """Abort every in-flight request and open stream issued through this transport.

        Requests made afterwards run in a fresh scope and are unaffected.
        """
        scope, self._scope = self._scope, _CancelScope()
        in_flight = len(scope.tasks)
        scope.abort()
        logger.info(f"Cancelled {in_flight} in-flight request(s)")
