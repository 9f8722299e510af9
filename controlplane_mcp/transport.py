"""HTTP transport to the control plane API.

Credentials come from the environment. When either the API URL or the token
is missing the server runs in documentation mode and no client is created.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import aiohttp

from .utils.config import env_float, env_str

DEFAULT_TIMEOUT = 30.0
API_ROOT = "/api"


class RemoteCallError(Exception):
    """Raised when the remote API cannot be reached or times out"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class Credentials:
    api_url: Optional[str] = None
    api_token: Optional[str] = None
    timeout: float = DEFAULT_TIMEOUT

    @classmethod
    def from_env(cls) -> "Credentials":
        return cls(
            api_url=env_str("API_URL"),
            api_token=env_str("API_TOKEN"),
            timeout=env_float("REQUEST_TIMEOUT", DEFAULT_TIMEOUT),
        )

    @property
    def configured(self) -> bool:
        return bool(self.api_url and self.api_token)

    @property
    def auth_mode(self) -> str:
        return "token" if self.configured else "none"

    @property
    def base_url(self) -> str:
        """API URL with a single trailing API root, e.g. https://tenant.example.com/api"""
        url = (self.api_url or "").rstrip("/")
        if not url.endswith(API_ROOT):
            url += API_ROOT
        return url


@dataclass
class APIResponse:
    status: int
    data: Any
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class APIClient:
    """Authenticated client for the control plane API

    Args:
        credentials: Configured credentials
        session: Existing aiohttp session to reuse; one is opened per call otherwise
    """

    def __init__(self, credentials: Credentials, session: Optional[aiohttp.ClientSession] = None):
        if not credentials.configured:
            raise ValueError("APIClient requires an API URL and token")
        self.credentials = credentials
        self._session = session

    @property
    def headers(self) -> dict:
        return {
            "Authorization": f"APIToken {self.credentials.api_token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    async def request(self, method: str, path: str, body: Optional[dict] = None) -> APIResponse:
        """Send one request; any HTTP status is returned, transport failures raise

        Args:
            method: HTTP verb
            path: Path below the API root, including any query string
            body: JSON body for POST/PUT/PATCH

        Raises:
            RemoteCallError: On connection failure or timeout
        """
        url = f"{self.credentials.base_url}{path}"
        timeout = aiohttp.ClientTimeout(total=self.credentials.timeout)
        kwargs = {"headers": self.headers, "timeout": timeout}
        if body is not None and method in ("POST", "PUT", "PATCH"):
            kwargs["json"] = body

        try:
            if self._session is not None:
                async with self._session.request(method, url, **kwargs) as response:
                    return await self._process_response(response)
            async with aiohttp.ClientSession() as session:
                async with session.request(method, url, **kwargs) as response:
                    return await self._process_response(response)
        except asyncio.TimeoutError as e:
            message = f"Request to {path} timed out after {self.credentials.timeout} seconds"
            logging.error(f"[Transport] {message}")
            raise RemoteCallError(message) from e
        except aiohttp.ClientError as e:
            logging.error(f"[Transport] {method} {path} failed: {e}")
            raise RemoteCallError(f"Request to {path} failed: {e}") from e

    async def _process_response(self, response: aiohttp.ClientResponse) -> APIResponse:
        if response.content_type and "json" in response.content_type:
            data = await response.json()
        else:
            data = await response.text()

        if response.status >= 200 and response.status < 300:
            logging.info(f"[Transport] {response.method} {response.url.path} returned {response.status}")
        else:
            logging.warning(f"[Transport] {response.method} {response.url.path} returned {response.status}")
        return APIResponse(status=response.status, data=data, headers=dict(response.headers))

    async def get(self, path: str) -> APIResponse:
        return await self.request("GET", path)

    async def post(self, path: str, body: Optional[dict] = None) -> APIResponse:
        return await self.request("POST", path, body)

    async def put(self, path: str, body: Optional[dict] = None) -> APIResponse:
        return await self.request("PUT", path, body)

    async def delete(self, path: str) -> APIResponse:
        return await self.request("DELETE", path)


__all__ = [
    "API_ROOT",
    "RemoteCallError",
    "Credentials",
    "APIResponse",
    "APIClient",
]
