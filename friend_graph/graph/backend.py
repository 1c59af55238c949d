"""
Friend Graph In-Memory Node/Link Store

The assembled relationship graph. Nodes are keyed by user id, links by
the unordered id pair, so at most one link exists per pair. Links hold
ids only; neighbours are resolved through the node table.

Only the assembler (full build) and the reconciler (single link edits)
change the link set. The highlight machine touches size_weight and
highlighted on nodes and nothing else.
"""

import hashlib
from dataclasses import replace
from typing import Optional

from friend_graph.graph.schema import (
    GraphNode, GraphLink, GraphStats, RelationshipType, Tier, pair_key,
)


class FriendGraph:
    """In-memory relationship graph rooted at one self node."""

    def __init__(self, self_id: str, direct_friend_total: int = 0):
        self.self_id = self_id
        # Number of self's direct friends when the graph was built
        self.direct_friend_total = direct_friend_total
        self._nodes: dict[str, GraphNode] = {}
        self._links: dict[tuple[str, str], GraphLink] = {}
        # Indexes for fast lookup
        self._nodes_by_tier: dict[Tier, set[str]] = {}
        self._adjacent: dict[str, set[str]] = {}   # node_id -> neighbour ids

    # --------------------------------------------------------
    # Node operations
    # --------------------------------------------------------

    def add_node(self, node: GraphNode) -> GraphNode:
        """Add a node. Rejects a second self node."""
        if node.tier == Tier.SELF and node.id != self.self_id:
            raise ValueError(f"only {self.self_id} may carry the self tier")
        existing = self._nodes.get(node.id)
        if existing:
            self._nodes_by_tier.get(existing.tier, set()).discard(node.id)
        self._nodes[node.id] = node
        self._nodes_by_tier.setdefault(node.tier, set()).add(node.id)
        self._adjacent.setdefault(node.id, set())
        return node

    def get_node(self, node_id: str) -> Optional[GraphNode]:
        return self._nodes.get(node_id)

    def has_node(self, node_id: str) -> bool:
        return node_id in self._nodes

    @property
    def self_node(self) -> Optional[GraphNode]:
        return self._nodes.get(self.self_id)

    def nodes(self) -> list[GraphNode]:
        return list(self._nodes.values())

    def get_nodes_by_tier(self, tier: Tier) -> list[GraphNode]:
        ids = self._nodes_by_tier.get(tier, set())
        return [self._nodes[nid] for nid in sorted(ids) if nid in self._nodes]

    # --------------------------------------------------------
    # Link operations
    # --------------------------------------------------------

    def add_link(self, source_id: str, target_id: str,
                 relationship_type: RelationshipType,
                 strength: float) -> Optional[GraphLink]:
        """Add a link, collapsing onto an existing one for the same pair.

        The stronger classification wins; on a tie the existing link is
        kept. Returns None if either endpoint is unknown.
        """
        if source_id not in self._nodes or target_id not in self._nodes:
            return None
        if source_id == target_id:
            return None
        key = pair_key(source_id, target_id)
        existing = self._links.get(key)
        if existing and existing.strength >= strength:
            return existing
        link = GraphLink(source_id=source_id, target_id=target_id,
                         relationship_type=relationship_type,
                         strength=strength)
        self._links[key] = link
        self._adjacent[source_id].add(target_id)
        self._adjacent[target_id].add(source_id)
        return link

    def put_link(self, link: GraphLink) -> GraphLink:
        """Store a link as given, replacing whatever the pair holds."""
        if link.source_id not in self._nodes or link.target_id not in self._nodes:
            raise KeyError(f"link endpoint missing: {link.source_id}-{link.target_id}")
        self._links[link.key] = link
        self._adjacent[link.source_id].add(link.target_id)
        self._adjacent[link.target_id].add(link.source_id)
        return link

    def get_link(self, a: str, b: str) -> Optional[GraphLink]:
        """Link between a and b in either direction."""
        return self._links.get(pair_key(a, b))

    def has_link(self, a: str, b: str) -> bool:
        return pair_key(a, b) in self._links

    def remove_link(self, a: str, b: str) -> Optional[GraphLink]:
        """Remove the link between a and b. Returns the removed link."""
        link = self._links.pop(pair_key(a, b), None)
        if link:
            self._adjacent.get(a, set()).discard(b)
            self._adjacent.get(b, set()).discard(a)
        return link

    def links(self) -> list[GraphLink]:
        return list(self._links.values())

    def links_touching(self, node_id: str) -> list[GraphLink]:
        return [self._links[pair_key(node_id, other)]
                for other in sorted(self._adjacent.get(node_id, set()))]

    def get_neighbors(self, node_id: str,
                      relationship_type: Optional[RelationshipType] = None) -> set[str]:
        """Ids linked to node_id, optionally filtered by link type."""
        neighbours = self._adjacent.get(node_id, set())
        if relationship_type is None:
            return set(neighbours)
        return {other for other in neighbours
                if self._links[pair_key(node_id, other)].relationship_type == relationship_type}

    # --------------------------------------------------------
    # Snapshots
    # --------------------------------------------------------

    def copy_link(self, a: str, b: str) -> Optional[GraphLink]:
        """Detached copy of the a-b link, for rollback."""
        link = self.get_link(a, b)
        return replace(link) if link else None

    def snapshot(self) -> dict:
        """Read-only view for the renderer."""
        return {
            "self_id": self.self_id,
            "nodes": [n.to_dict() for n in sorted(self._nodes.values(), key=lambda n: n.id)],
            "links": [l.to_dict() for _, l in sorted(self._links.items())],
        }

    # --------------------------------------------------------
    # Stats
    # --------------------------------------------------------

    @property
    def node_count(self) -> int:
        return len(self._nodes)

    @property
    def link_count(self) -> int:
        return len(self._links)

    def stats(self) -> GraphStats:
        return GraphStats(
            node_count=self.node_count,
            link_count=self.link_count,
            tier_counts={tier.value: len(self._nodes_by_tier.get(tier, ()))
                         for tier in Tier},
        )

    def compute_state_hash(self) -> str:
        """Deterministic hash of every node and link field."""
        h = hashlib.sha256()
        for nid in sorted(self._nodes.keys()):
            node = self._nodes[nid]
            for k, v in sorted(node.to_dict().items()):
                h.update(k.encode())
                h.update(repr(v).encode())
        for key in sorted(self._links.keys()):
            for k, v in sorted(self._links[key].to_dict().items()):
                h.update(k.encode())
                h.update(repr(v).encode())
        return h.hexdigest()

    def presentation_hash(self) -> str:
        """Hash of the transient fields only (size_weight, highlighted)."""
        h = hashlib.sha256()
        for nid in sorted(self._nodes.keys()):
            node = self._nodes[nid]
            h.update(nid.encode())
            h.update(repr(node.size_weight).encode())
            h.update(b"1" if node.highlighted else b"0")
        return h.hexdigest()
