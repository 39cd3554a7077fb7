"""HTTP adapter for the credential-issuing endpoint."""
from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

import httpx


class HTTPCredentialIssuer:
    """
    HTTP client adapter for credential requests.

    Implements ICredentialIssuer protocol. A single request per `issue()`
    call; a failed call fails the current refresh.

    Usage:
        async with HTTPCredentialIssuer("https://api.example.com/oss/policy") as issuer:
            payload = await issuer.issue()
    """

    def __init__(
        self,
        url: str,
        method: str = "GET",
        timeout: int = 60,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._url = url
        self._method = method.upper()
        self._timeout = timeout
        self._headers = headers or {}
        self._params = params or {}
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def url(self) -> str:
        return self._url

    async def __aenter__(self):
        self._client = httpx.AsyncClient(
            timeout=self._timeout,
            headers=self._headers,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args):
        await self.aclose()

    async def aclose(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def issue(self) -> Mapping[str, Any]:
        if not self._client:
            raise RuntimeError("HTTPCredentialIssuer not initialized. Use 'async with' context.")

        if self._method == "GET":
            response = await self._client.get(self._url, params=self._params)
        else:
            response = await self._client.request(self._method, self._url, json=self._params)

        if response.status_code >= 400:
            try:
                error_detail = response.json()
            except Exception:
                error_detail = response.text
            raise RuntimeError(
                f"Credential API error {response.status_code} on {self._method} {self._url}: {error_detail}"
            )

        payload = response.json()
        if not isinstance(payload, dict):
            raise RuntimeError(f"Credential API returned {type(payload).__name__}, expected object")

        # Some issuers wrap the credential as {"code": 0, "data": {...}}
        data = payload.get("data")
        if isinstance(data, dict) and "policy" not in payload:
            return data
        return payload
