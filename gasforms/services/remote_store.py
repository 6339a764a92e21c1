"""Remote store access.

The hosted backend exposes each table as a REST collection. ``PostgrestStore``
speaks that dialect over httpx; ``MemoryStore`` implements the same contract
in-process for tests and offline development.

Every call is scoped by an owner identity (``user_id``) supplied by the
caller; this module never manages authentication itself.
"""
import copy
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol, Sequence

import httpx

from gasforms.core.config import Settings
from gasforms.core.errors import NOT_FOUND_CODE, NetworkError, RemoteStoreError
from gasforms.core.logging import get_logger, log_remote_call

logger = get_logger(__name__)

Row = Dict[str, Any]
Filters = Dict[str, Any]


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class RemoteStore(Protocol):
    """Keyed CRUD over named collections."""

    async def select(self, collection: str, filters: Optional[Filters] = None,
                     columns: str = "*", order: Optional[str] = None) -> List[Row]:
        ...

    async def select_one(self, collection: str, filters: Filters,
                         columns: str = "*") -> Optional[Row]:
        ...

    async def insert(self, collection: str, row: Row) -> Row:
        ...

    async def update(self, collection: str, record_id: Any, patch: Row,
                     owner_filter: Optional[Filters] = None) -> Row:
        ...

    async def delete(self, collection: str, record_id: Any,
                     owner_filter: Optional[Filters] = None) -> None:
        ...

    async def delete_where(self, collection: str, filters: Filters) -> None:
        ...

    async def upsert(self, collection: str, row: Row,
                     conflict_keys: Sequence[str]) -> Row:
        ...


# =============================================================================
# REST BACKEND
# =============================================================================

def _filter_value(value: Any) -> str:
    if value is None:
        return "is.null"
    if isinstance(value, bool):
        return f"eq.{str(value).lower()}"
    return f"eq.{value}"


def _to_params(filters: Optional[Filters]) -> Dict[str, str]:
    return {key: _filter_value(value) for key, value in (filters or {}).items()}


class PostgrestStore:
    """Remote store client for the hosted Postgres REST interface.

    Usage:
        async with PostgrestStore(settings, access_token=session.token) as store:
            rows = await store.select("clients", {"user_id": user_id}, order="name")
    """

    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None,
                 access_token: Optional[str] = None):
        self.settings = settings
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=settings.remote_timeout)
        self._access_token = access_token or settings.supabase_access_token

    async def __aenter__(self) -> "PostgrestStore":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the HTTP client if this store created it."""
        if self._owns_client:
            await self._client.aclose()

    def set_access_token(self, token: Optional[str]) -> None:
        """Swap the bearer token after sign-in or refresh."""
        self._access_token = token

    def _headers(self, prefer: Optional[str] = None) -> Dict[str, str]:
        headers = {
            "apikey": self.settings.supabase_anon_key,
            "Authorization": f"Bearer {self._access_token or self.settings.supabase_anon_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    async def _request(self, method: str, collection: str, operation: str,
                       params: Optional[Dict[str, str]] = None,
                       json: Any = None, prefer: Optional[str] = None) -> Any:
        url = f"{self.settings.rest_url}/{collection}"
        start = time.perf_counter()
        try:
            response = await self._client.request(
                method, url, params=params, json=json, headers=self._headers(prefer)
            )
        except httpx.TransportError as e:
            log_remote_call(logger, collection, operation, success=False,
                            duration=time.perf_counter() - start, error=str(e))
            raise NetworkError(f"{operation} {collection} failed: {e}") from e

        duration = time.perf_counter() - start
        if response.is_error:
            error = self._error_from_response(response)
            log_remote_call(logger, collection, operation, success=False, duration=duration,
                            status=response.status_code, code=error.code)
            raise error

        log_remote_call(logger, collection, operation, success=True, duration=duration,
                        status=response.status_code)
        if not response.content:
            return None
        return response.json()

    @staticmethod
    def _error_from_response(response: httpx.Response) -> RemoteStoreError:
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        message = body.get("message") or response.reason_phrase or f"HTTP {response.status_code}"
        return RemoteStoreError(
            message,
            status=response.status_code,
            code=body.get("code"),
            details=body.get("details") or body.get("hint"),
        )

    async def select(self, collection: str, filters: Optional[Filters] = None,
                     columns: str = "*", order: Optional[str] = None) -> List[Row]:
        params = _to_params(filters)
        params["select"] = columns
        if order:
            params["order"] = order if "." in order else f"{order}.asc"
        return await self._request("GET", collection, "select", params=params) or []

    async def select_one(self, collection: str, filters: Filters,
                         columns: str = "*") -> Optional[Row]:
        params = _to_params(filters)
        params["select"] = columns
        params["limit"] = "1"
        rows = await self._request("GET", collection, "select_one", params=params) or []
        return rows[0] if rows else None

    async def insert(self, collection: str, row: Row) -> Row:
        rows = await self._request("POST", collection, "insert", json=row,
                                   prefer="return=representation")
        return rows[0]

    async def update(self, collection: str, record_id: Any, patch: Row,
                     owner_filter: Optional[Filters] = None) -> Row:
        params = _to_params({**(owner_filter or {}), "id": record_id})
        rows = await self._request("PATCH", collection, "update", params=params, json=patch,
                                   prefer="return=representation")
        if not rows:
            raise RemoteStoreError("Record not found", status=404, code=NOT_FOUND_CODE)
        return rows[0]

    async def delete(self, collection: str, record_id: Any,
                     owner_filter: Optional[Filters] = None) -> None:
        params = _to_params({**(owner_filter or {}), "id": record_id})
        await self._request("DELETE", collection, "delete", params=params)

    async def delete_where(self, collection: str, filters: Filters) -> None:
        if not filters:
            raise ValueError("delete_where requires at least one filter")
        await self._request("DELETE", collection, "delete", params=_to_params(filters))

    async def upsert(self, collection: str, row: Row,
                     conflict_keys: Sequence[str]) -> Row:
        params = {"on_conflict": ",".join(conflict_keys)}
        rows = await self._request("POST", collection, "upsert", params=params, json=row,
                                   prefer="resolution=merge-duplicates,return=representation")
        return rows[0]


# =============================================================================
# IN-MEMORY BACKEND
# =============================================================================

def _matches(row: Row, filters: Optional[Filters]) -> bool:
    return all(row.get(key) == value for key, value in (filters or {}).items())


class MemoryStore:
    """In-process remote store with server-assigned ids and timestamps."""

    def __init__(self):
        self._tables: Dict[str, List[Row]] = {}

    def _table(self, collection: str) -> List[Row]:
        return self._tables.setdefault(collection, [])

    def rows(self, collection: str) -> List[Row]:
        """Snapshot of a collection, for inspection."""
        return copy.deepcopy(self._table(collection))

    async def select(self, collection: str, filters: Optional[Filters] = None,
                     columns: str = "*", order: Optional[str] = None) -> List[Row]:
        rows = [r for r in self._table(collection) if _matches(r, filters)]
        if order:
            field, _, direction = order.partition(".")
            rows = sorted(rows, key=lambda r: (r.get(field) is None, r.get(field)),
                          reverse=direction == "desc")
        return [self._project(r, columns) for r in rows]

    async def select_one(self, collection: str, filters: Filters,
                         columns: str = "*") -> Optional[Row]:
        rows = await self.select(collection, filters, columns)
        return rows[0] if rows else None

    async def insert(self, collection: str, row: Row) -> Row:
        now = utc_now_iso()
        stored = copy.deepcopy(row)
        stored["id"] = stored.get("id") or str(uuid.uuid4())
        stored.update(created_at=now, updated_at=now)
        self._table(collection).append(stored)
        return copy.deepcopy(stored)

    async def update(self, collection: str, record_id: Any, patch: Row,
                     owner_filter: Optional[Filters] = None) -> Row:
        for row in self._table(collection):
            if row.get("id") == record_id and _matches(row, owner_filter):
                row.update(copy.deepcopy(patch))
                row["updated_at"] = utc_now_iso()
                return copy.deepcopy(row)
        raise RemoteStoreError("Record not found", status=404, code=NOT_FOUND_CODE)

    async def delete(self, collection: str, record_id: Any,
                     owner_filter: Optional[Filters] = None) -> None:
        await self.delete_where(collection, {**(owner_filter or {}), "id": record_id})

    async def delete_where(self, collection: str, filters: Filters) -> None:
        if not filters:
            raise ValueError("delete_where requires at least one filter")
        table = self._table(collection)
        table[:] = [r for r in table if not _matches(r, filters)]

    async def upsert(self, collection: str, row: Row,
                     conflict_keys: Sequence[str]) -> Row:
        key = {k: row.get(k) for k in conflict_keys}
        for existing in self._table(collection):
            if _matches(existing, key):
                existing.update(copy.deepcopy(row))
                existing.setdefault("updated_at", utc_now_iso())
                return copy.deepcopy(existing)
        return await self.insert(collection, row)

    @staticmethod
    def _project(row: Row, columns: str) -> Row:
        if columns.strip() == "*":
            return copy.deepcopy(row)
        wanted = [c.strip() for c in columns.split(",")]
        return {c: copy.deepcopy(row.get(c)) for c in wanted}
