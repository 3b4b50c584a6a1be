"""
Minimal stand-in for aiohttp.ClientSession.

Only what RestMarketDataSource._get touches: `request()` as an async context
manager yielding a response with `status`, `read()` and `text()`, plus `closed` and
`close()`. Routes match on the URL path suffix.
"""

from typing import Any, Dict, List, Optional, Tuple, Union

import msgspec


class FakeResponse:
    def __init__(self, status: int = 200, body: Union[str, bytes, Any] = "",
                 exception: Optional[BaseException] = None):
        self.status = status
        if isinstance(body, bytes):
            self._body = body
        elif isinstance(body, str):
            self._body = body.encode()
        else:
            self._body = msgspec.json.encode(body)
        self.exception = exception

    async def read(self) -> bytes:
        return self._body

    async def text(self) -> str:
        return self._body.decode()

    async def __aenter__(self) -> "FakeResponse":
        if self.exception is not None:
            raise self.exception
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        return None


class FakeSession:
    def __init__(self, routes: Optional[Dict[str, FakeResponse]] = None):
        self.routes: Dict[str, FakeResponse] = dict(routes or {})
        self.requests: List[Tuple[str, str, Optional[Dict[str, Any]]]] = []
        self.closed = False

    def route(self, path: str, response: FakeResponse) -> None:
        self.routes[path] = response

    def request(self, method: str, url: str, params: Optional[Dict[str, Any]] = None) -> FakeResponse:
        self.requests.append((method, url, params))
        for path, response in self.routes.items():
            if url.endswith(path):
                return response
        return FakeResponse(404, "Not Found")

    async def close(self) -> None:
        self.closed = True
