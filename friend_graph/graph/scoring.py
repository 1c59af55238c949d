"""
Friend Graph Mutual Connections & Compatibility

mutual_count(U) = |direct friends of self  ∩  friend-neighbours of U|

compatibility_score = round_half_up(min(100, mutual / total_direct * 100)),
0 when self has no direct friends. The score is measured against the
viewer's friend count, not the candidate's, so it is not symmetric
between two users.
"""

import math

MAX_SCORE = 100


def count_mutuals(user_ids: list[str], friend_adjacency: dict[str, set[str]],
                  direct_ids: set[str], self_id: str) -> dict[str, int]:
    """Mutual-connection count for every non-self id.

    friend_adjacency must be built from friend connections only, so
    duplicate or reversed rows for a pair count once.
    """
    counts = {}
    for uid in user_ids:
        if uid == self_id:
            continue
        counts[uid] = len(friend_adjacency.get(uid, set()) & direct_ids)
    return counts


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def compatibility_score(mutual_count: int, total_direct_friends: int) -> int:
    """Bounded percentage in [0, 100]. Defined (0) when there are no friends."""
    if total_direct_friends <= 0 or mutual_count <= 0:
        return 0
    ratio = min(float(MAX_SCORE), (mutual_count / total_direct_friends) * MAX_SCORE)
    return _round_half_up(ratio)
