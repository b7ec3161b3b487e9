"""
JSON-RPC 2.0 Client for Bundler and Paymaster Endpoints

Provides an httpx.AsyncClient subclass that performs single JSON-RPC
exchanges and maps every failure mode onto the pipeline error taxonomy:

- transport failure (connect, read timeout, TLS) -> ProviderError
- non-JSON body or HTTP error without an error object -> ProviderError
- response without a ``result`` member -> ProviderError
- provider error object -> ProviderError with code/message intact, or
  ValidationRejected for ERC-4337 validation codes (-32500..-32507, AAxx)

No call is ever retried here; the caller owns retry policy.
"""

import logging
import re
from typing import Any, List, Optional
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

import httpx

from ..engine.exceptions import ProviderError, ValidationRejected

logger = logging.getLogger(__name__)


#: ERC-4337 bundler error codes for operations rejected during validation
VALIDATION_ERROR_CODES = frozenset(range(-32507, -32499))

_AA_CODE = re.compile(r"\bAA[1-9]\d\b")
_SECRET_QUERY_KEYS = {"apikey", "api_key", "sponsorapikey", "key"}


def redact_url(url: str) -> str:
    """
    Strip API keys from an endpoint URL for logging.

    Handles both query-string keys (``?apikey=...``) and path keys
    (``/v2/<key>``).
    """
    parsed = urlparse(url)
    query = [
        (k, "***" if k.lower() in _SECRET_QUERY_KEYS else v)
        for k, v in parse_qsl(parsed.query, keep_blank_values=True)
    ]
    path = parsed.path
    segments = path.split("/")
    if len(segments) >= 2 and segments[-2] == "v2" and segments[-1]:
        segments[-1] = "***"
        path = "/".join(segments)
    return urlunparse(parsed._replace(path=path, query=urlencode(query, safe="*")))


def is_validation_error(code: Optional[int], message: str) -> bool:
    return (code in VALIDATION_ERROR_CODES) or bool(_AA_CODE.search(message or ""))


class JsonRpcClient(httpx.AsyncClient):
    """
    Extended httpx.AsyncClient speaking JSON-RPC 2.0 to one endpoint.

    Fully compatible with httpx.AsyncClient: it can be used as an async
    context manager and accepts all standard arguments (timeout, transport,
    headers, ...).

    Usage:
        ```python
        async with JsonRpcClient("https://bundler.example/rpc", provider="pimlico") as rpc:
            op_hash = await rpc.call("eth_sendUserOperation", [op, entry_point])
        ```
    """

    def __init__(self, url: str, provider: str, **kwargs):
        """
        Initialize client for a single endpoint.

        Args:
            url: Endpoint URL (may embed an API key)
            provider: Provider name attached to raised errors
            **kwargs: All standard httpx.AsyncClient arguments
        """
        kwargs.setdefault("timeout", 30.0)
        headers = kwargs.pop("headers", {}) or {}
        headers.setdefault("Content-Type", "application/json")
        super().__init__(headers=headers, **kwargs)
        self.url = url
        self.provider = provider
        self._request_id = 0

    def _next_id(self) -> int:
        self._request_id += 1
        return self._request_id

    async def call(self, method: str, params: List[Any], allow_null: bool = False) -> Any:
        """
        Perform one JSON-RPC request.

        Args:
            method: JSON-RPC method name
            params: Positional params
            allow_null: Accept ``"result": null`` (e.g. receipt not yet available)

        Returns:
            The ``result`` member of the response

        Raises:
            ProviderError: Transport failure or malformed response
            ValidationRejected: Provider rejected the operation during validation
        """
        payload = {
            "jsonrpc": "2.0",
            "id": self._next_id(),
            "method": method,
            "params": params,
        }
        logger.debug("%s -> %s %s", self.provider, method, redact_url(self.url))

        try:
            response = await self.post(self.url, json=payload)
        except httpx.HTTPError as e:
            raise ProviderError(self.provider, method, e) from e

        try:
            body = response.json()
        except ValueError as e:
            raise ProviderError(
                self.provider, method, f"non-JSON response (HTTP {response.status_code})"
            ) from e

        if not isinstance(body, dict):
            raise ProviderError(self.provider, method, f"unexpected response type {type(body).__name__}")

        error = body.get("error")
        if error is not None:
            raise self._error_from_envelope(method, error)

        if response.status_code >= 400:
            raise ProviderError(self.provider, method, f"HTTP {response.status_code}")

        if "result" not in body:
            raise ProviderError(self.provider, method, "response has no result field")

        result = body["result"]
        if result is None and not allow_null:
            raise ProviderError(self.provider, method, "response result is null")
        return result

    def _error_from_envelope(self, method: str, error: Any) -> ProviderError:
        if isinstance(error, dict):
            code = error.get("code")
            message = str(error.get("message", ""))
            data = error.get("data")
        else:
            code, message, data = None, str(error), None

        if is_validation_error(code, message):
            logger.warning("%s rejected %s: %s (code %s)", self.provider, method, message, code)
            return ValidationRejected(self.provider, method, message, code=code, data=data)
        return ProviderError(self.provider, method, message, code=code, data=data)
