"""
Friend Graph Roster & Connection Loader

Fetches the roster and every connection row, and normalises them into
UserRecord / ConnectionRecord lists. No business logic beyond shape:
- roster rows without an id are dropped, duplicate ids keep the first row
- connection rows with an unknown type, a self-loop, or an endpoint
  missing from the roster are skipped and counted

Every load is stamped with a generation number. Only the result of the
most recently started load is current; anything older is stale.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from friend_graph.core.errors import LoadFailure, StoreError
from friend_graph.graph.schema import ConnectionRecord, RelationshipType, UserRecord

logger = logging.getLogger("friend_graph.loader")


@dataclass
class LoadResult:
    """Normalised output of one load attempt."""
    self_id: str
    users: list[UserRecord]
    connections: list[ConnectionRecord]
    generation: int
    skipped_connections: int = 0
    skipped_users: int = 0

    @property
    def user_ids(self) -> list[str]:
        return [u.id for u in self.users]


def normalize_user(row: dict) -> Optional[UserRecord]:
    """Roster row -> UserRecord, None if the row has no usable id."""
    if not isinstance(row, dict):
        return None
    uid = row.get("id")
    if uid is None or str(uid) == "":
        return None
    return UserRecord(
        id=str(uid),
        display_name=str(row.get("name") or row.get("display_name") or ""),
        avatar_ref=str(row.get("avatar") or row.get("avatar_ref") or ""),
        zodiac_sign=row.get("zodiac_sign") or None,
        is_online=bool(row.get("is_online", False)),
        last_active=row.get("last_active"),
        bio=row.get("bio"),
    )


def normalize_connection(row: dict, known_ids: set[str]) -> Optional[ConnectionRecord]:
    """Connection row -> ConnectionRecord, None if malformed."""
    if not isinstance(row, dict):
        return None
    a, b = row.get("user_id"), row.get("connected_user_id")
    if a is None or b is None:
        return None
    a, b = str(a), str(b)
    if a == b:
        return None
    rel_type = RelationshipType.parse(row.get("connection_type"))
    if rel_type is None:
        return None
    # Never create placeholder nodes for ids missing from the roster
    if a not in known_ids or b not in known_ids:
        return None
    return ConnectionRecord(user_id=a, connected_user_id=b, connection_type=rel_type)


def normalize(user_rows: list[dict], connection_rows: list[dict],
              self_id: Optional[str] = None,
              generation: int = 0) -> LoadResult:
    """Build a LoadResult from raw rows.

    When self_id is None the first roster row is self.
    """
    users: list[UserRecord] = []
    seen: set[str] = set()
    skipped_users = 0
    for row in user_rows:
        user = normalize_user(row)
        if user is None or user.id in seen:
            skipped_users += 1
            continue
        seen.add(user.id)
        users.append(user)

    if not users:
        raise LoadFailure("roster", ValueError("no users found"), generation)
    if self_id is None:
        self_id = users[0].id
    elif self_id not in seen:
        raise LoadFailure("self", KeyError(f"user {self_id} not in roster"), generation)

    connections: list[ConnectionRecord] = []
    skipped = 0
    for row in connection_rows:
        conn = normalize_connection(row, seen)
        if conn is None:
            skipped += 1
            logger.warning("skipping malformed connection row: %r", row)
            continue
        connections.append(conn)

    return LoadResult(
        self_id=self_id,
        users=users,
        connections=connections,
        generation=generation,
        skipped_connections=skipped,
        skipped_users=skipped_users,
    )


class RosterLoader:
    """Loads users and connections from a store."""

    def __init__(self, store, self_id: Optional[str] = None):
        self.store = store
        self.self_id = self_id
        self._generation = 0

    @property
    def latest_generation(self) -> int:
        return self._generation

    def is_current(self, generation: int) -> bool:
        return generation == self._generation

    async def load(self) -> LoadResult:
        """Fetch and normalise. Raises LoadFailure; never returns partial data."""
        self._generation += 1
        generation = self._generation
        logger.info("load %d started", generation)

        try:
            user_rows = await self.store.fetch_users()
        except StoreError as e:
            logger.error("load %d: roster fetch failed: %s", generation, e)
            raise LoadFailure("roster", e, generation) from e
        if user_rows is None:
            raise LoadFailure("roster", ValueError("no users found"), generation)

        try:
            connection_rows = await self.store.fetch_connections()
        except StoreError as e:
            logger.error("load %d: connection fetch failed: %s", generation, e)
            raise LoadFailure("connections", e, generation) from e
        if connection_rows is None:
            raise LoadFailure("connections", ValueError("no connections found"), generation)

        result = normalize(user_rows, connection_rows, self.self_id, generation)
        logger.info("load %d finished: %d users, %d connections, %d skipped",
                    generation, len(result.users), len(result.connections),
                    result.skipped_connections)
        return result
