import json
import asyncio
from typing import Optional, Any, Dict

import aiohttp
from loguru import logger

from noticesync.core.exceptions import (
    MalformedResponse,
    MissingTokenError,
    NetworkError,
    ServerError,
    Unauthorized,
)
from noticesync.utils.tools import truncate_content


class HttpClient:
    """Bearer-authenticated JSON client shared by all notice sources"""

    DEFAULT_HEADERS = {
        "Accept": "application/json",
        "Content-Type": "application/json",
    }

    def __init__(self, base_url: str, token: str, timeout: float = 20):
        if not token:
            raise MissingTokenError("A bearer token is required to talk to the notice API")

        self.base_url = base_url.rstrip("/")
        self._token = token
        self._timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None

        self._log = logger.bind(component="http")

    @property
    def headers(self) -> Dict[str, str]:
        headers = self.DEFAULT_HEADERS.copy()
        headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def _get_session(self) -> aiohttp.ClientSession:
        if not self._session or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers=self.headers,
                timeout=aiohttp.ClientTimeout(total=self._timeout),
            )
        return self._session

    def build_url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    async def request(self, method: str, path: str, source: Optional[str] = None, **kwargs) -> str:
        """Send a request and return the body text; no retries at this level"""
        url = self.build_url(path)
        session = self._get_session()
        status = None

        try:
            async with session.request(method, url, **kwargs) as response:
                status = response.status
                text = await response.text()
        except UnicodeDecodeError as e:
            raise MalformedResponse(f"Undecodable body from {method} {url}: {e.reason}", source, status) from e
        except asyncio.TimeoutError as e:
            raise NetworkError(f"Timed out after {self._timeout}s: {method} {url}", source) from e
        except aiohttp.ClientError as e:
            raise NetworkError(f"{method} {url} failed: {e}", source) from e

        if status in (401, 403):
            raise Unauthorized(truncate_content(text, 200) or "Unauthorized", source, status)
        if status >= 300:
            raise ServerError(truncate_content(text, 200) or "Request failed", source, status)

        self._log.debug(f"{method} {url} -> {status}")
        return text

    async def request_json(self, method: str, path: str, source: Optional[str] = None, **kwargs) -> Any:
        text = await self.request(method, path, source=source, **kwargs)
        if not text.strip():
            return None

        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise MalformedResponse(f"Invalid JSON: {truncate_content(text, 200)}", source) from e

    async def get(self, path: str, source: Optional[str] = None, **kwargs) -> Any:
        return await self.request_json("GET", path, source=source, **kwargs)

    async def post(self, path: str, source: Optional[str] = None, **kwargs) -> Any:
        return await self.request_json("POST", path, source=source, **kwargs)

    async def close(self):
        if self._session and not self._session.closed:
            await self._session.close()
