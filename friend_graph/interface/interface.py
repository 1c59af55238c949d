"""
Friend Graph Interface Layer

The entry point the renderer talks to. Handles:
  - loading (store -> loader -> assembler), newest load wins
  - the read-only {nodes, links} snapshot
  - event hooks: hover, click, add/remove connection
  - the current-error slot

The session owns the one in-memory graph. It is replaced whole on
every successful load and edited link-by-link by the reconciler.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from friend_graph.core.errors import (
    ErrorKind, LoadFailure, MutationFailure, SessionError,
)
from friend_graph.core.reconciler import MutationRecord, Reconciler
from friend_graph.graph.assembler import assemble_graph
from friend_graph.graph.backend import FriendGraph
from friend_graph.graph.schema import GraphStats, Tier
from friend_graph.interface.highlight import HighlightMachine, HighlightResult
from friend_graph.profile.zodiac import zodiac_affinity
from friend_graph.store.loader import LoadResult, RosterLoader

logger = logging.getLogger("friend_graph.session")


@dataclass
class NodeDetail:
    """What the detail card shows for a selected node."""
    id: str
    display_name: str
    avatar_ref: str
    tier: Tier
    zodiac_sign: Optional[str]
    mutual_count: Optional[int]
    compatibility_score: Optional[int]
    zodiac_affinity: Optional[int] = None
    profile_path: Optional[str] = None
    is_online: bool = False
    last_active: Optional[str] = None
    bio: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "display_name": self.display_name,
            "avatar_ref": self.avatar_ref,
            "tier": self.tier.value,
            "zodiac_sign": self.zodiac_sign,
            "mutual_count": self.mutual_count,
            "compatibility_score": self.compatibility_score,
            "zodiac_affinity": self.zodiac_affinity,
            "profile_path": self.profile_path,
            "is_online": self.is_online,
            "last_active": self.last_active,
            "bio": self.bio,
        }


def profile_path(node_id: str) -> str:
    return f"/profile/{node_id}"


class NetworkSession:
    """One viewer's relationship graph and its interaction state."""

    def __init__(self, store, self_id: Optional[str] = None,
                 navigate: Optional[Callable[[str], None]] = None):
        self.store = store
        self.loader = RosterLoader(store, self_id)
        self.highlight = HighlightMachine()
        self.navigate = navigate
        self.graph: Optional[FriendGraph] = None
        self.reconciler: Optional[Reconciler] = None
        self.current_error: Optional[SessionError] = None
        self.last_load: Optional[LoadResult] = None

    @property
    def is_loaded(self) -> bool:
        return self.graph is not None

    # --------------------------------------------------------
    # Loading
    # --------------------------------------------------------

    async def reload(self) -> Optional[FriendGraph]:
        """Fresh load. Returns the new graph, or None if a newer load superseded it.

        LoadFailure is recorded in the error slot and re-raised; the
        previously published graph stays as it was.
        """
        try:
            result = await self.loader.load()
        except LoadFailure as e:
            if not self.loader.is_current(e.generation):
                logger.info("stale load %d failed, ignored", e.generation)
                return None
            self.current_error = SessionError(ErrorKind.LOAD_FAILURE, str(e))
            raise

        if not self.loader.is_current(result.generation):
            logger.info("discarding stale load %d (latest %d)",
                        result.generation, self.loader.latest_generation)
            return None

        graph = assemble_graph(result)
        self.graph = graph
        self.last_load = result
        self.highlight.rebind(graph)
        if self.reconciler is None or self.reconciler.self_id != result.self_id:
            self.reconciler = Reconciler(self.store, result.self_id)
        self.current_error = None
        return graph

    # --------------------------------------------------------
    # Read model
    # --------------------------------------------------------

    def snapshot(self) -> dict:
        if self.graph is None:
            return {"self_id": None, "nodes": [], "links": []}
        return self.graph.snapshot()

    def stats(self) -> Optional[GraphStats]:
        return self.graph.stats() if self.graph else None

    def detail(self, node_id: str) -> NodeDetail:
        node = self.graph.get_node(node_id) if self.graph else None
        if node is None:
            raise KeyError(node_id)
        me = self.graph.self_node
        affinity = None
        if not node.is_self and me and me.zodiac_sign and node.zodiac_sign:
            affinity = zodiac_affinity(me.zodiac_sign, node.zodiac_sign)
        return NodeDetail(
            id=node.id,
            display_name=node.display_name,
            avatar_ref=node.avatar_ref,
            tier=node.tier,
            zodiac_sign=node.zodiac_sign,
            mutual_count=node.mutual_count,
            compatibility_score=node.compatibility_score,
            zodiac_affinity=affinity,
            profile_path=None if node.is_self else profile_path(node.id),
            is_online=node.is_online,
            last_active=node.last_active,
            bio=node.bio,
        )

    # --------------------------------------------------------
    # Event hooks
    # --------------------------------------------------------

    def on_node_hover(self, node_id: Optional[str]) -> HighlightResult:
        return self.highlight.hover(node_id)

    def on_node_click(self, node_id: str) -> NodeDetail:
        """Select the node and hand its profile path to navigation."""
        self.highlight.select(node_id)
        detail = self.detail(node_id)
        if detail.profile_path and self.navigate:
            self.navigate(detail.profile_path)
        return detail

    async def on_request_add_connection(self, node_id: str) -> MutationRecord:
        return await self._mutate(node_id, add=True)

    async def on_request_remove_connection(self, node_id: str) -> MutationRecord:
        return await self._mutate(node_id, add=False)

    async def _mutate(self, node_id: str, add: bool) -> MutationRecord:
        if self.graph is None or self.reconciler is None:
            raise RuntimeError("graph not loaded")
        graph = self.graph
        try:
            if add:
                return await self.reconciler.add_connection(graph, node_id)
            return await self.reconciler.remove_connection(graph, node_id)
        except MutationFailure as e:
            self.current_error = SessionError(
                ErrorKind.MUTATION_FAILURE, str(e), target_id=node_id,
                retryable=not e.rejected)
            raise

    def dismiss_error(self) -> None:
        self.current_error = None
