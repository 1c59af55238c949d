"""
Friend Graph Assembler

Turns one LoadResult into a FriendGraph:
  tiers -> mutual counts -> scores -> nodes -> de-duplicated links

The graph is always built from scratch. Nodes start at their tier
baseline weight with nothing highlighted.
"""

import logging

from friend_graph.graph.backend import FriendGraph
from friend_graph.graph.schema import GraphNode, Tier, baseline_weight, link_strength
from friend_graph.graph.scoring import compatibility_score, count_mutuals
from friend_graph.graph.tiers import build_adjacency, classify_tiers, direct_friend_ids
from friend_graph.store.loader import LoadResult

logger = logging.getLogger("friend_graph.assembler")


def assemble_graph(load: LoadResult) -> FriendGraph:
    """Build the node/link model for one load."""
    self_id = load.self_id
    user_ids = load.user_ids

    tiers = classify_tiers(user_ids, load.connections, self_id)
    direct_ids = direct_friend_ids(tiers)
    mutuals = count_mutuals(user_ids, build_adjacency(load.connections),
                            direct_ids, self_id)
    total_direct = len(direct_ids)

    graph = FriendGraph(self_id, direct_friend_total=total_direct)

    for user in load.users:
        tier = tiers[user.id]
        node = GraphNode(
            id=user.id,
            tier=tier,
            display_name=user.display_name,
            avatar_ref=user.avatar_ref,
            zodiac_sign=user.zodiac_sign,
            is_online=user.is_online,
            last_active=user.last_active,
            bio=user.bio,
            mutual_count=None if tier == Tier.SELF else mutuals.get(user.id, 0),
            size_weight=baseline_weight(tier),
        )
        if tier == Tier.SUGGESTED:
            node.compatibility_score = compatibility_score(node.mutual_count, total_direct)
        graph.add_node(node)

    for conn in load.connections:
        strength = link_strength(conn.connection_type, conn.touches(self_id))
        if graph.add_link(conn.user_id, conn.connected_user_id,
                          conn.connection_type, strength) is None:
            logger.warning("link %s-%s dropped: endpoint missing",
                           conn.user_id, conn.connected_user_id)

    logger.info("assembled graph: %d nodes, %d links, %d direct friends",
                graph.node_count, graph.link_count, total_direct)
    return graph
