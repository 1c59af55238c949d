"""
Friend Graph Store Clients

Production reads and writes the hosted relational store through its
REST interface (PostgREST, as exposed by Supabase). InMemoryStore keeps
the same semantics in a pair of lists for development and testing.

Both return raw row dicts; shape normalisation lives in the loader.
"""

import os
import logging
from typing import Optional

import httpx

from friend_graph.core.errors import StoreError

logger = logging.getLogger("friend_graph.store")

USER_COLUMNS = "id,name,avatar,zodiac_sign,is_online,last_active,bio"
CONNECTION_COLUMNS = "user_id,connected_user_id,connection_type"


def _quote(value: str) -> str:
    """Filter value in PostgREST double quotes, so , ( ) stay literal."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


class InMemoryStore:
    """Dict-backed store with the same interface as SupabaseStore."""

    kind = "in-memory"

    def __init__(self, users: Optional[list[dict]] = None,
                 connections: Optional[list[dict]] = None):
        self.users: list[dict] = [dict(u) for u in users or []]
        self.connections: list[dict] = [dict(c) for c in connections or []]

    async def fetch_users(self) -> list[dict]:
        return [dict(u) for u in self.users]

    async def fetch_connections(self) -> list[dict]:
        return [dict(c) for c in self.connections]

    async def upsert_connection(self, user_id: str, connected_user_id: str,
                                connection_type: str) -> None:
        for row in self.connections:
            if row["user_id"] == user_id and row["connected_user_id"] == connected_user_id:
                row["connection_type"] = connection_type
                return
        self.connections.append({
            "user_id": user_id,
            "connected_user_id": connected_user_id,
            "connection_type": connection_type,
        })

    async def delete_connection_pair(self, a: str, b: str) -> int:
        before = len(self.connections)
        self.connections = [
            row for row in self.connections
            if {row["user_id"], row["connected_user_id"]} != {a, b}
        ]
        return before - len(self.connections)


class SupabaseStore:
    """REST client for the users and user_connections tables."""

    kind = "supabase"

    def __init__(self, url: str = None, api_key: str = None,
                 timeout: float = None,
                 users_table: str = None, connections_table: str = None,
                 client: Optional[httpx.AsyncClient] = None):
        self._url = (url or os.getenv("SUPABASE_URL", "")).rstrip("/")
        if not self._url:
            raise ValueError("SUPABASE_URL not set")
        self._api_key = api_key or os.getenv("SUPABASE_KEY", "")
        self._timeout = float(timeout or os.getenv("STORE_TIMEOUT", "30"))
        self._users_table = users_table or os.getenv("USERS_TABLE", "users")
        self._connections_table = connections_table or os.getenv(
            "CONNECTIONS_TABLE", "user_connections")
        # Injected client is reused across calls and owned by the caller
        self._client = client

    @property
    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["apikey"] = self._api_key
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _table_url(self, table: str) -> str:
        return f"{self._url}/rest/v1/{table}"

    async def _request(self, method: str, table: str, params: dict = None,
                       json_body=None, extra_headers: dict = None) -> httpx.Response:
        headers = dict(self._headers)
        headers.update(extra_headers or {})
        try:
            if self._client is not None:
                resp = await self._client.request(
                    method, self._table_url(table), params=params,
                    json=json_body, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    resp = await client.request(
                        method, self._table_url(table), params=params,
                        json=json_body, headers=headers)
        except httpx.HTTPError as e:
            raise StoreError(f"{method} {table}: {e}") from e
        if resp.status_code >= 400:
            raise StoreError(f"{method} {table}: HTTP {resp.status_code} {resp.text[:200]}",
                             status_code=resp.status_code)
        return resp

    @staticmethod
    def _rows(resp: httpx.Response, table: str) -> list[dict]:
        try:
            rows = resp.json()
        except ValueError as e:
            raise StoreError(f"GET {table}: invalid JSON body") from e
        if not isinstance(rows, list):
            raise StoreError(f"GET {table}: expected a list of rows")
        return rows

    async def fetch_users(self) -> list[dict]:
        resp = await self._request("GET", self._users_table,
                                   params={"select": USER_COLUMNS})
        return self._rows(resp, self._users_table)

    async def fetch_connections(self) -> list[dict]:
        resp = await self._request("GET", self._connections_table,
                                   params={"select": CONNECTION_COLUMNS})
        return self._rows(resp, self._connections_table)

    async def upsert_connection(self, user_id: str, connected_user_id: str,
                                connection_type: str) -> None:
        await self._request(
            "POST", self._connections_table,
            params={"on_conflict": "user_id,connected_user_id"},
            json_body=[{
                "user_id": user_id,
                "connected_user_id": connected_user_id,
                "connection_type": connection_type,
            }],
            extra_headers={"Prefer": "resolution=merge-duplicates,return=minimal"},
        )
        logger.debug("upserted %s -> %s (%s)", user_id, connected_user_id, connection_type)

    async def delete_connection_pair(self, a: str, b: str) -> int:
        """Delete every row pairing a and b, in either direction."""
        resp = await self._request(
            "DELETE", self._connections_table,
            params={"or": (f"(and(user_id.eq.{_quote(a)},connected_user_id.eq.{_quote(b)}),"
                           f"and(user_id.eq.{_quote(b)},connected_user_id.eq.{_quote(a)}))")},
            extra_headers={"Prefer": "return=representation"},
        )
        try:
            deleted = resp.json()
        except ValueError:
            return 0
        return len(deleted) if isinstance(deleted, list) else 0


def create_store():
    """SupabaseStore when SUPABASE_URL is set, otherwise a seeded InMemoryStore."""
    if os.getenv("SUPABASE_URL"):
        return SupabaseStore()
    from friend_graph.store.demo import demo_store
    return demo_store()
