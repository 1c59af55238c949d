"""
Friend Graph Mutation Reconciler

add_connection / remove_connection run in two phases:

  1. apply   the link edit goes into the in-memory graph at once
  2. settle  the remote write is awaited; success commits, failure
             puts the pre-call link back and raises MutationFailure

Only link-level state is touched. Tiers, mutual counts and scores
change on the next full rebuild.

Calls for the same target id are serialised, so a rollback can never
interleave with another edit of the same link. Every attempt is
appended to the reconciler's history.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from friend_graph.core.errors import MutationFailure
from friend_graph.graph.backend import FriendGraph
from friend_graph.graph.schema import (
    CONFIRMED_FRIEND_STRENGTH, GraphLink, RelationshipType,
)

logger = logging.getLogger("friend_graph.reconciler")


class MutationOp(Enum):
    ADD = "add"
    REMOVE = "remove"


class MutationOutcome(Enum):
    COMMITTED = "committed"      # local edit confirmed by the store
    ROLLED_BACK = "rolled_back"  # remote write failed, local edit reverted
    REJECTED = "rejected"        # refused before any local edit
    NOOP = "noop"                # nothing to do (remove on an absent link)


@dataclass
class MutationRecord:
    """One entry in the reconciler history."""
    op: MutationOp
    target_id: str
    outcome: MutationOutcome
    before: Optional[GraphLink] = None
    after: Optional[GraphLink] = None
    detail: str = ""

    def to_dict(self) -> dict:
        return {
            "op": self.op.value,
            "target_id": self.target_id,
            "outcome": self.outcome.value,
            "before": self.before.to_dict() if self.before else None,
            "after": self.after.to_dict() if self.after else None,
            "detail": self.detail,
        }


class Reconciler:
    """Optimistic link edits against a store, with rollback."""

    def __init__(self, store, self_id: str):
        self.store = store
        self.self_id = self_id
        self.history: list[MutationRecord] = []
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    @asynccontextmanager
    async def _target_lock(self, target_id: str):
        """Hold the lock for target_id; drop it once no call holds or awaits it."""
        lock = self._locks.get(target_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[target_id] = lock
        self._lock_users[target_id] = self._lock_users.get(target_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[target_id] -= 1
            if self._lock_users[target_id] == 0:
                del self._lock_users[target_id]
                del self._locks[target_id]

    def _record(self, record: MutationRecord) -> MutationRecord:
        self.history.append(record)
        return record

    def _reject(self, op: MutationOp, graph: FriendGraph, target_id: str) -> None:
        """Refuse targets that cannot hold a link to self."""
        detail = None
        if target_id == self.self_id:
            detail = "cannot connect to self"
        elif not graph.has_node(target_id):
            detail = "target not in graph"
        elif graph.self_id != self.self_id:
            detail = "graph belongs to another user"
        if detail:
            self._record(MutationRecord(op, target_id, MutationOutcome.REJECTED, detail=detail))
            raise MutationFailure(op.value, target_id, detail, rejected=True)

    @staticmethod
    def _restore(graph: FriendGraph, a: str, b: str, before: Optional[GraphLink]) -> None:
        """Put the a-b pair back exactly as it was."""
        graph.remove_link(a, b)
        if before is not None:
            graph.put_link(before)

    # --------------------------------------------------------
    # add_connection
    # --------------------------------------------------------

    async def add_connection(self, graph: FriendGraph, target_id: str) -> MutationRecord:
        """Make self-target a confirmed friend link."""
        op = MutationOp.ADD
        self._reject(op, graph, target_id)

        async with self._target_lock(target_id):
            before = graph.copy_link(self.self_id, target_id)
            if before is not None:
                after = GraphLink(before.source_id, before.target_id,
                                  RelationshipType.FRIEND, CONFIRMED_FRIEND_STRENGTH)
            else:
                after = GraphLink(self.self_id, target_id,
                                  RelationshipType.FRIEND, CONFIRMED_FRIEND_STRENGTH)
            graph.put_link(after)
            logger.info("add %s: applied locally", target_id)

            try:
                await self.store.upsert_connection(
                    self.self_id, target_id, RelationshipType.FRIEND.value)
            except Exception as e:
                self._restore(graph, self.self_id, target_id, before)
                logger.warning("add %s: remote write failed, rolled back: %s", target_id, e)
                self._record(MutationRecord(op, target_id, MutationOutcome.ROLLED_BACK,
                                            before=before, after=after, detail=str(e)))
                raise MutationFailure(op.value, target_id, str(e)) from e

            logger.info("add %s: committed", target_id)
            return self._record(MutationRecord(op, target_id, MutationOutcome.COMMITTED,
                                               before=before, after=after))

    # --------------------------------------------------------
    # remove_connection
    # --------------------------------------------------------

    async def remove_connection(self, graph: FriendGraph, target_id: str) -> MutationRecord:
        """Drop any self-target link, whichever side stored it."""
        op = MutationOp.REMOVE
        self._reject(op, graph, target_id)

        async with self._target_lock(target_id):
            before = graph.copy_link(self.self_id, target_id)
            if before is None:
                return self._record(MutationRecord(op, target_id, MutationOutcome.NOOP,
                                                   detail="no link"))
            graph.remove_link(self.self_id, target_id)
            logger.info("remove %s: applied locally", target_id)

            try:
                await self.store.delete_connection_pair(self.self_id, target_id)
            except Exception as e:
                self._restore(graph, self.self_id, target_id, before)
                logger.warning("remove %s: remote delete failed, rolled back: %s", target_id, e)
                self._record(MutationRecord(op, target_id, MutationOutcome.ROLLED_BACK,
                                            before=before, detail=str(e)))
                raise MutationFailure(op.value, target_id, str(e)) from e

            logger.info("remove %s: committed", target_id)
            return self._record(MutationRecord(op, target_id, MutationOutcome.COMMITTED,
                                               before=before))
