"""
Friend Graph Highlight / Neighbour Expansion

Two states:
  Idle              no node hovered
  Hovered(node_id)  node_id and its linked neighbours are expanded

Every transition recomputes presentation fields from the tier baseline,
so Idle -> Hovered(n) -> Idle always returns the exact baseline. Only
size_weight and highlighted are written here.

Selection is a separate slot and never changes presentation fields.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from friend_graph.graph.backend import FriendGraph
from friend_graph.graph.schema import Tier, expanded_weight
from friend_graph.graph.scoring import compatibility_score

logger = logging.getLogger("friend_graph.highlight")


class HoverState(Enum):
    IDLE = "idle"
    HOVERED = "hovered"


@dataclass
class HighlightResult:
    """What a hover transition produced, for the renderer."""
    state: HoverState
    hovered_id: Optional[str] = None
    connected_nodes: set[str] = field(default_factory=set)
    connected_links: list[tuple[str, str]] = field(default_factory=list)
    highlighted: set[str] = field(default_factory=set)
    # Scores of the suggested neighbours that were called out
    suggested_scores: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "state": self.state.value,
            "hovered_id": self.hovered_id,
            "connected_nodes": sorted(self.connected_nodes),
            "connected_links": [list(k) for k in self.connected_links],
            "highlighted": sorted(self.highlighted),
            "suggested_scores": dict(sorted(self.suggested_scores.items())),
        }


class HighlightMachine:
    """Hover state machine plus an independent selection slot."""

    def __init__(self, graph: Optional[FriendGraph] = None):
        self.graph = graph
        self.hovered_id: Optional[str] = None
        self.selected_id: Optional[str] = None

    @property
    def state(self) -> HoverState:
        return HoverState.IDLE if self.hovered_id is None else HoverState.HOVERED

    def rebind(self, graph: FriendGraph) -> None:
        """Attach a freshly built graph. Hover and selection start over."""
        self.graph = graph
        self.hovered_id = None
        if self.selected_id is not None and not graph.has_node(self.selected_id):
            self.selected_id = None

    # --------------------------------------------------------
    # Hover
    # --------------------------------------------------------

    def hover(self, node_id: Optional[str]) -> HighlightResult:
        """Apply a hover event. None, or an id not in the graph, means hover-out."""
        if self.graph is None:
            self.hovered_id = None
            return HighlightResult(state=HoverState.IDLE)
        if node_id is None or not self.graph.has_node(node_id):
            if node_id is not None:
                logger.debug("hover on unknown node %s treated as hover-out", node_id)
            return self.clear()

        graph = self.graph
        connected_links = [link.key for link in graph.links_touching(node_id)]
        connected = {node_id} | graph.get_neighbors(node_id)

        result = HighlightResult(state=HoverState.HOVERED, hovered_id=node_id,
                                 connected_nodes=connected,
                                 connected_links=connected_links)
        for node in graph.nodes():
            if node.id not in connected:
                node.reset_presentation()
                continue
            node.size_weight = expanded_weight(node.tier, node.id == node_id)
            node.highlighted = node.id != node_id and node.tier == Tier.SUGGESTED
            if node.highlighted:
                result.highlighted.add(node.id)
                result.suggested_scores[node.id] = self.score_for(node.id)

        self.hovered_id = node_id
        return result

    def clear(self) -> HighlightResult:
        """Hovered -> Idle: every node back to its tier baseline."""
        if self.graph is not None:
            for node in self.graph.nodes():
                node.reset_presentation()
        self.hovered_id = None
        return HighlightResult(state=HoverState.IDLE)

    def score_for(self, node_id: str) -> Optional[int]:
        """Compatibility of a suggested node, from its mutual count.

        Same formula as assembly; the stored field is never written.
        """
        node = self.graph.get_node(node_id) if self.graph else None
        if node is None or node.tier != Tier.SUGGESTED:
            return None
        return compatibility_score(node.mutual_count or 0, self.graph.direct_friend_total)

    # --------------------------------------------------------
    # Selection
    # --------------------------------------------------------

    def select(self, node_id: Optional[str]) -> Optional[str]:
        if node_id is not None and (self.graph is None or not self.graph.has_node(node_id)):
            raise KeyError(node_id)
        self.selected_id = node_id
        return node_id

    def clear_selection(self) -> None:
        self.selected_id = None
