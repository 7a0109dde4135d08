"""REST Store — PostgREST/Supabase-style RemoteStore over httpx.AsyncClient.

Invariants:
    - Transport failures (connect, read, timeout) raise RemoteError("Network error: ...")
    - Non-2xx responses raise RemoteError(message, code, status) from the JSON body
    - Writes send `Prefer: return=representation` and read rows back from the body
    - get_current_user() returns None (never raises) when there is no access token
      or the token is rejected (401/403)

Design Decisions:
    - Filters map to `column=op.value` query params; IN lists become `in.(a,b)`
    - Range pagination uses offset/limit params (inclusive range converted)
    - httpx client injectable so tests run against httpx.MockTransport
"""

import logging
from typing import Any

import httpx

from tenant_store.core.domain_types import Record
from tenant_store.core.store_protocols import (
    Filter, FilterOp, Ordering, RemoteError,
)

logger = logging.getLogger(__name__)

REST_PREFIX = "/rest/v1"
AUTH_USER_PATH = "/auth/v1/user"
RETURN_REPRESENTATION = {"Prefer": "return=representation"}


def _format_value(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _quote(value: Any) -> str:
    text = _format_value(value)
    if any(ch in text for ch in ',()"'):
        escaped = text.replace('"', '\\"')
        return f'"{escaped}"'
    return text


def build_filter_params(filters: list[Filter] | None) -> list[tuple[str, str]]:
    """Translate filters to PostgREST query params (repeated keys are ANDed)."""
    params = []
    for f in filters or []:
        if f.op is FilterOp.IN:
            value = "(" + ",".join(_quote(v) for v in f.value) + ")"
        else:
            value = _format_value(f.value)
        params.append((f.column, f"{f.op.value}.{value}"))
    return params


def build_order_param(order: list[Ordering] | None) -> str | None:
    if not order:
        return None
    return ",".join(
        f"{o.column}.{'asc' if o.ascending else 'desc'}" for o in order
    )


def _error_from_response(response: httpx.Response) -> RemoteError:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        message = (
            body.get("message")
            or body.get("msg")
            or body.get("error_description")
            or body.get("error")
            or f"HTTP {response.status_code}"
        )
        code = body.get("code")
        return RemoteError(
            str(message),
            None if code is None else str(code),
            response.status_code,
        )
    return RemoteError(
        f"HTTP {response.status_code}: {response.text[:200]}",
        status=response.status_code,
    )


class RestStore:
    """RemoteStore backed by a PostgREST endpoint (e.g. Supabase)."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        profiles_table: str = "user_profiles",
        profile_user_column: str = "user_id",
        timeout_seconds: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ):
        self._api_key = api_key
        self._profiles_table = profiles_table
        self._profile_user_column = profile_user_column
        self._access_token: str | None = None
        self._client = client or httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout_seconds,
        )

    def set_access_token(self, token: str | None) -> None:
        """Bind the signed-in user's JWT (None signs out)."""
        self._access_token = token

    async def aclose(self) -> None:
        await self._client.aclose()

    # ─── RemoteStore ─────────────────────────────────────────────

    async def select(
        self,
        table: str,
        *,
        columns: str = "*",
        filters: list[Filter] | None = None,
        order: list[Ordering] | None = None,
        range: tuple[int, int] | None = None,
        limit: int | None = None,
    ) -> list[Record]:
        params = [("select", columns), *build_filter_params(filters)]
        order_param = build_order_param(order)
        if order_param:
            params.append(("order", order_param))
        if range is not None:
            start, end = range
            params.append(("offset", str(start)))
            params.append(("limit", str(max(0, end - start + 1))))
        elif limit is not None:
            params.append(("limit", str(limit)))
        response = await self._request("GET", self._table_path(table), params=params)
        return response.json()

    async def insert(self, table: str, row: Record) -> Record:
        response = await self._request(
            "POST", self._table_path(table),
            json=row, headers=RETURN_REPRESENTATION,
        )
        rows = response.json()
        if isinstance(rows, list):
            if not rows:
                raise RemoteError(f"Insert into {table} returned no row")
            return rows[0]
        return rows

    async def update(
        self, table: str, patch: Record, filters: list[Filter],
    ) -> list[Record]:
        response = await self._request(
            "PATCH", self._table_path(table),
            params=build_filter_params(filters),
            json=patch, headers=RETURN_REPRESENTATION,
        )
        return response.json()

    async def delete(self, table: str, filters: list[Filter]) -> int:
        response = await self._request(
            "DELETE", self._table_path(table),
            params=build_filter_params(filters),
            headers=RETURN_REPRESENTATION,
        )
        return len(response.json())

    async def get_current_user(self) -> Record | None:
        if not self._access_token:
            return None
        try:
            response = await self._request("GET", AUTH_USER_PATH)
        except RemoteError as e:
            if e.status in (401, 403):
                logger.info("Access token rejected; no current user")
                return None
            raise
        return response.json()

    async def get_profile(self, user_id: str) -> Record | None:
        rows = await self.select(
            self._profiles_table,
            filters=[Filter(self._profile_user_column, user_id)],
            limit=1,
        )
        return rows[0] if rows else None

    # ─── HTTP ────────────────────────────────────────────────────

    def _table_path(self, table: str) -> str:
        return f"{REST_PREFIX}/{table}"

    def _headers(self, extra: dict[str, str] | None = None) -> dict[str, str]:
        headers = {
            "apikey": self._api_key,
            "Authorization": f"Bearer {self._access_token or self._api_key}",
        }
        if extra:
            headers.update(extra)
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: list[tuple[str, str]] | None = None,
        json: Any = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        try:
            response = await self._client.request(
                method, path,
                params=params, json=json, headers=self._headers(headers),
            )
        except httpx.TransportError as e:
            logger.warning(f"{method} {path} transport failure: {e!r}")
            raise RemoteError(f"Network error: {e}") from e
        if response.is_error:
            raise _error_from_response(response)
        return response
