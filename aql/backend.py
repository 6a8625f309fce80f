"""Async client for the hosted database/auth service.

Speaks the PostgREST dialect for tables (``/rest/v1/<table>``) and the GoTrue
endpoints for auth (``/auth/v1/...``). The wrapper adds nothing beyond request
building and error mapping; the service owns every consistency guarantee.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

import httpx
from pydantic import BaseModel

from .errors import BackendError, NotFoundError
from .settings import settings

logger = logging.getLogger(__name__)

NOT_FOUND_CODE = "PGRST116"
_SINGLE_ACCEPT = "application/vnd.pgrst.object+json"


class BackendConfig(BaseModel):
    url: str
    key: str
    timeout_s: float = 15
    schema_name: str = "public"

    @classmethod
    def from_settings(cls, service: bool = False) -> "BackendConfig":
        url, key = settings.backend_credentials(service=service)
        return cls(
            url=url,
            key=key,
            timeout_s=float(settings.backend.get("timeout_s", 15)),
            schema_name=settings.backend.get("schema", "public"),
        )


class QueryResult(BaseModel):
    data: Any
    count: Optional[int] = None


def _fmt(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _parse_count(content_range: Optional[str]) -> Optional[int]:
    # "0-9/10" or "*/0"
    if not content_range or "/" not in content_range:
        return None
    total = content_range.rsplit("/", 1)[1]
    return int(total) if total.isdigit() else None


class TableQuery:
    """Chainable request against one table, sent by ``await execute()``."""

    def __init__(self, client: "BackendClient", table: str) -> None:
        self._client = client
        self._table = table
        self._method = "GET"
        self._columns: Optional[str] = None
        self._filters: List[Tuple[str, str]] = []
        self._order: List[str] = []
        self._limit: Optional[int] = None
        self._single = False
        self._count: Optional[str] = None
        self._head = False
        self._body: Any = None

    def select(self, columns: str = "*", count: Optional[str] = None, head: bool = False) -> "TableQuery":
        self._columns = columns
        self._count = count
        self._head = head
        return self

    def eq(self, column: str, value: Any) -> "TableQuery":
        self._filters.append((column, f"eq.{_fmt(value)}"))
        return self

    def neq(self, column: str, value: Any) -> "TableQuery":
        self._filters.append((column, f"neq.{_fmt(value)}"))
        return self

    def gt(self, column: str, value: Any) -> "TableQuery":
        self._filters.append((column, f"gt.{_fmt(value)}"))
        return self

    def is_(self, column: str, value: Any) -> "TableQuery":
        self._filters.append((column, f"is.{_fmt(value)}"))
        return self

    def ilike(self, column: str, pattern: str) -> "TableQuery":
        self._filters.append((column, f"ilike.{pattern}"))
        return self

    def in_(self, column: str, values: List[Any]) -> "TableQuery":
        joined = ",".join(_fmt(v) for v in values)
        self._filters.append((column, f"in.({joined})"))
        return self

    def contains(self, column: str, values: List[Any]) -> "TableQuery":
        # array column holds every value
        joined = ",".join(_fmt(v) for v in values)
        self._filters.append((column, f"cs.{{{joined}}}"))
        return self

    def order(self, column: str, ascending: bool = True) -> "TableQuery":
        self._order.append(f"{column}.{'asc' if ascending else 'desc'}")
        return self

    def limit(self, n: int) -> "TableQuery":
        self._limit = n
        return self

    def single(self) -> "TableQuery":
        self._single = True
        return self

    def insert(self, rows: Any) -> "TableQuery":
        self._method = "POST"
        self._body = rows
        return self

    def update(self, values: Dict[str, Any]) -> "TableQuery":
        self._method = "PATCH"
        self._body = values
        return self

    def delete(self) -> "TableQuery":
        self._method = "DELETE"
        return self

    def _params(self) -> List[Tuple[str, str]]:
        params: List[Tuple[str, str]] = []
        if self._method == "GET":
            params.append(("select", self._columns or "*"))
        elif self._columns:
            params.append(("select", self._columns))
        params.extend(self._filters)
        if self._order:
            params.append(("order", ",".join(self._order)))
        if self._limit is not None:
            params.append(("limit", str(self._limit)))
        return params

    def _headers(self) -> Dict[str, str]:
        prefer = []
        if self._method in ("POST", "PATCH"):
            prefer.append("return=representation")
        if self._count:
            prefer.append(f"count={self._count}")
        headers = {}
        if prefer:
            headers["Prefer"] = ",".join(prefer)
        if self._single:
            headers["Accept"] = _SINGLE_ACCEPT
        return headers

    async def execute(self) -> QueryResult:
        method = "HEAD" if self._head else self._method
        resp = await self._client.request(
            method,
            f"/rest/v1/{self._table}",
            params=self._params(),
            json=self._body,
            headers=self._headers(),
            single=self._single,
        )
        count = _parse_count(resp.headers.get("content-range"))
        if method == "HEAD" or not resp.content:
            return QueryResult(data=None if self._single else [], count=count)
        return QueryResult(data=resp.json(), count=count)


class BackendClient:
    def __init__(self, cfg: BackendConfig, client: Optional[httpx.AsyncClient] = None) -> None:
        self.cfg = cfg
        self._owns_client = client is None
        self._http = client or httpx.AsyncClient(base_url=cfg.url, timeout=cfg.timeout_s)
        self._access_token: Optional[str] = None

    @classmethod
    def from_settings(cls, service: bool = False) -> "BackendClient":
        return cls(BackendConfig.from_settings(service=service))

    async def __aenter__(self) -> "BackendClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    def set_access_token(self, token: Optional[str]) -> None:
        """Send requests as the signed-in user instead of the project key."""
        self._access_token = token

    def _base_headers(self, token: Optional[str] = None) -> Dict[str, str]:
        bearer = token or self._access_token or self.cfg.key
        return {
            "apikey": self.cfg.key,
            "Authorization": f"Bearer {bearer}",
            "Accept-Profile": self.cfg.schema_name,
            "Content-Profile": self.cfg.schema_name,
        }

    def table(self, name: str) -> TableQuery:
        return TableQuery(self, name)

    async def request(
        self,
        method: str,
        path: str,
        params: Any = None,
        json: Any = None,
        headers: Optional[Dict[str, str]] = None,
        single: bool = False,
        token: Optional[str] = None,
    ) -> httpx.Response:
        merged = self._base_headers(token)
        if headers:
            merged.update(headers)
        try:
            resp = await self._http.request(method, path, params=params, json=json, headers=merged)
        except httpx.HTTPError as e:
            raise BackendError(f"{method} {path} failed: {type(e).__name__}: {e}") from e

        if resp.status_code >= 400:
            raise _error_from_response(method, path, resp, single)
        return resp

    async def rpc(self, function: str, params: Optional[Dict[str, Any]] = None) -> Any:
        resp = await self.request("POST", f"/rest/v1/rpc/{function}", json=params or {})
        return resp.json() if resp.content else None

    async def auth(
        self,
        method: str,
        endpoint: str,
        json: Any = None,
        params: Any = None,
        token: Optional[str] = None,
    ) -> Any:
        resp = await self.request(method, f"/auth/v1/{endpoint}", params=params, json=json, token=token)
        return resp.json() if resp.content else None


def _error_from_response(method: str, path: str, resp: httpx.Response, single: bool) -> BackendError:
    code = None
    message = f"{method} {path} returned {resp.status_code}"
    details = None
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        code = body.get("code") or body.get("error_code")
        message = (
            body.get("message")
            or body.get("msg")
            or body.get("error_description")
            or body.get("error")
            or message
        )
        details = body.get("details")
    if code == NOT_FOUND_CODE or (single and resp.status_code == 406):
        return NotFoundError(message, status=resp.status_code, code=code or NOT_FOUND_CODE, details=details)
    return BackendError(message, status=resp.status_code, code=str(code) if code else None, details=details)
