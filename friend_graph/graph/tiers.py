"""
Friend Graph Tier Classifier

Partitions the roster into tiers relative to self:
  depth 1 over friend links  -> DIRECT
  depth 2 over friend links  -> SECOND_DEGREE
  suggested link to self     -> SUGGESTED (if not already classified)
  everyone else              -> OTHER

Only friend connections create adjacency. BFS marks nodes visited at
the first depth it reaches them, so depth 1 always beats depth 2.
"""

from friend_graph.graph.schema import ConnectionRecord, RelationshipType, Tier

MAX_TIER_DEPTH = 2

_DEPTH_TIER = {
    1: Tier.DIRECT,
    2: Tier.SECOND_DEGREE,
}


def build_adjacency(connections: list[ConnectionRecord],
                    rel_type: RelationshipType = RelationshipType.FRIEND) -> dict[str, set[str]]:
    """Symmetric adjacency over connections of one type."""
    adjacency: dict[str, set[str]] = {}
    for conn in connections:
        if conn.connection_type != rel_type:
            continue
        adjacency.setdefault(conn.user_id, set()).add(conn.connected_user_id)
        adjacency.setdefault(conn.connected_user_id, set()).add(conn.user_id)
    return adjacency


def bfs_depths(adjacency: dict[str, set[str]], start_id: str,
               max_depth: int = MAX_TIER_DEPTH) -> dict[str, int]:
    """Depth of every node reachable from start_id within max_depth."""
    visited = {start_id}
    queue = [(start_id, 0)]
    depths: dict[str, int] = {}

    while queue:
        current_id, depth = queue.pop(0)
        if depth > 0:
            depths[current_id] = depth
        if depth >= max_depth:
            continue
        # Sorted so traversal order never depends on set ordering
        for next_id in sorted(adjacency.get(current_id, set())):
            if next_id not in visited:
                visited.add(next_id)
                queue.append((next_id, depth + 1))

    return depths


def suggested_for(connections: list[ConnectionRecord], self_id: str) -> set[str]:
    """Ids holding a suggested connection to self, either direction."""
    ids = set()
    for conn in connections:
        if conn.connection_type == RelationshipType.SUGGESTED:
            other = conn.other(self_id)
            if other is not None:
                ids.add(other)
    return ids


def classify_tiers(user_ids: list[str], connections: list[ConnectionRecord],
                   self_id: str) -> dict[str, Tier]:
    """Exactly one tier per roster id; self maps to Tier.SELF."""
    adjacency = build_adjacency(connections)
    depths = bfs_depths(adjacency, self_id)
    suggested = suggested_for(connections, self_id)

    tiers: dict[str, Tier] = {}
    for uid in user_ids:
        if uid == self_id:
            tiers[uid] = Tier.SELF
        elif uid in depths:
            tiers[uid] = _DEPTH_TIER[depths[uid]]
        elif uid in suggested:
            tiers[uid] = Tier.SUGGESTED
        else:
            tiers[uid] = Tier.OTHER
    return tiers


def direct_friend_ids(tiers: dict[str, Tier]) -> set[str]:
    return {uid for uid, tier in tiers.items() if tier == Tier.DIRECT}
