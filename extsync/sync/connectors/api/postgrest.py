"""
PostgREST Row Store.

Talks to a Supabase / PostgREST endpoint over HTTP. Managed databases of
this kind are only reachable through row-level REST operations, so the
match-all delete is expressed as a primary-key filter instead of TRUNCATE.
"""

import json
import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from extsync.sync.connectors.base import (
    ConnectionStatus,
    RowStore,
    StoreConfig,
    StoreFactory,
)
from extsync.sync.exceptions import StoreError
from extsync.sync.models import ChangedSince, Row

logger = logging.getLogger(__name__)

REST_PATH = "/rest/v1"

# PostgREST db-max-rows default on Supabase; override with extra["max_rows"]
DEFAULT_MAX_ROWS = 1000


def format_timestamp(value: datetime) -> str:
    """ISO-8601 timestamp; naive values are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def _json_default(value: Any) -> Any:
    # Rows read through SQLAlchemy carry datetime, Decimal and UUID values
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def changed_since_params(changed_since: ChangedSince) -> Dict[str, str]:
    """PostgREST query parameters selecting rows changed at or after ``since``."""
    stamp = format_timestamp(changed_since.since)
    if len(changed_since.columns) == 1:
        return {changed_since.columns[0]: f"gte.{stamp}"}
    # Values inside or=(...) are quoted because timestamps contain ':' and '.'
    conditions = ",".join(f'{column}.gte."{stamp}"' for column in changed_since.columns)
    return {"or": f"({conditions})"}


def parse_content_range(header: Optional[str]) -> int:
    """Total from a ``Content-Range`` header such as ``0-24/573`` or ``*/0``."""
    if not header or "/" not in header:
        raise StoreError(f"Missing row count in Content-Range header: {header!r}")
    total = header.rsplit("/", 1)[1]
    if total == "*":
        raise StoreError("Server did not return an exact row count")
    try:
        return int(total)
    except ValueError as e:
        raise StoreError(f"Invalid Content-Range header: {header!r}") from e


class PostgRESTStore(RowStore):
    """
    Row store for Supabase / PostgREST.

    The service key is sent both as ``apikey`` and as bearer token, as the
    Supabase gateway expects.
    """

    def __init__(self, config: StoreConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        super().__init__(config)
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self.max_page_size = int(config.extra.get("max_rows", DEFAULT_MAX_ROWS))

    @property
    def base_url(self) -> str:
        return f"{self.config.url.rstrip('/')}{REST_PATH}"

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if self.config.api_key:
            headers["apikey"] = self.config.api_key
            headers["Authorization"] = f"Bearer {self.config.api_key}"
        if self.config.schema_name and self.config.schema_name != "public":
            headers["Accept-Profile"] = self.config.schema_name
            headers["Content-Profile"] = self.config.schema_name
        return headers

    async def connect(self) -> bool:
        if not self.config.url:
            raise StoreError(f"No URL configured for store '{self.name}'")
        if self._client is None:
            self._set_status(ConnectionStatus.CONNECTING)
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=self._headers(),
                timeout=self.config.timeout,
                transport=self._transport,
            )
            self._set_status(ConnectionStatus.CONNECTED)
            logger.info(f"PostgREST store {self.name} ready at {self.base_url}")
        return True

    async def disconnect(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        self._set_status(ConnectionStatus.DISCONNECTED)

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json_body: Any = None,
        headers: Optional[Dict[str, str]] = None
    ) -> httpx.Response:
        if self._client is None:
            await self.connect()
        try:
            response = await self._client.request(
                method,
                path,
                params=params,
                content=None if json_body is None else json.dumps(json_body, default=_json_default),
                headers=headers,
            )
        except httpx.HTTPError as e:
            self._set_status(ConnectionStatus.ERROR)
            error = StoreError(f"{method} {path} failed: {e}")
            self._record_error(error)
            raise error from e

        if response.status_code >= 400:
            error = StoreError(self._error_message(response), status_code=response.status_code)
            self._record_error(error)
            raise error
        return response

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            payload = response.json()
        except (json.JSONDecodeError, ValueError):
            return f"HTTP {response.status_code}: {response.text}".strip()
        if isinstance(payload, dict):
            message = payload.get("message") or payload.get("error") or str(payload)
            details = payload.get("details")
            return f"{message} ({details})" if details else message
        return str(payload)

    async def health_check(self) -> bool:
        try:
            response = await self._request("GET", "/")
            return response.status_code < 400
        except StoreError:
            return False

    async def fetch_page(
        self,
        table: str,
        order_by: str,
        offset: int,
        limit: int,
        changed_since: Optional[ChangedSince] = None
    ) -> List[Row]:
        params: Dict[str, Any] = {
            "select": "*",
            "order": f"{order_by}.asc",
            "offset": offset,
            "limit": limit,
        }
        if changed_since is not None:
            params.update(changed_since_params(changed_since))

        response = await self._request("GET", f"/{table}", params=params)
        rows = response.json()
        if not isinstance(rows, list):
            raise StoreError(f"Unexpected response reading {table}: {rows!r}")
        self._record_read(len(rows))
        return rows

    async def delete_all(self, table: str, pk_column: str) -> None:
        await self._request(
            "DELETE",
            f"/{table}",
            params={pk_column: "not.is.null"},
            headers={"Prefer": "return=minimal"},
        )

    async def insert_rows(self, table: str, rows: List[Row]) -> None:
        await self._request(
            "POST",
            f"/{table}",
            json_body=rows,
            headers={"Prefer": "return=minimal"},
        )
        self._record_write(len(rows))

    async def upsert_rows(self, table: str, rows: List[Row], pk_column: str) -> None:
        await self._request(
            "POST",
            f"/{table}",
            params={"on_conflict": pk_column},
            json_body=rows,
            headers={"Prefer": "resolution=merge-duplicates,return=minimal"},
        )
        self._record_write(len(rows))

    async def count_rows(self, table: str) -> int:
        response = await self._request(
            "HEAD",
            f"/{table}",
            params={"select": "*"},
            headers={"Prefer": "count=exact"},
        )
        return parse_content_range(response.headers.get("content-range"))


# Register store
StoreFactory.register("postgrest", PostgRESTStore)
