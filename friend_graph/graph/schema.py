"""
Friend Graph Schema

Closed vocabularies and record types for the relationship graph:
- Tier (relationship category of a node relative to self)
- RelationshipType (connection_type of a stored record)
- UserRecord / ConnectionRecord (normalised store rows)
- GraphNode / GraphLink (the derived model handed to the renderer)

Links reference nodes by id only. Renderers resolve ids against the
node table at draw time.
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Optional


# ============================================================
# Vocabularies
# ============================================================

class Tier(Enum):
    """Relationship tier of a node, assigned once per build."""
    SELF = "self"
    DIRECT = "direct"
    SECOND_DEGREE = "secondDegree"
    SUGGESTED = "suggested"
    OTHER = "other"


class RelationshipType(Enum):
    """connection_type values accepted from the store."""
    FRIEND = "friend"
    PENDING = "pending"
    SUGGESTED = "suggested"

    @classmethod
    def parse(cls, value: Any) -> Optional["RelationshipType"]:
        """Map a raw connection_type to a member, None if unknown."""
        if isinstance(value, RelationshipType):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


# ============================================================
# Presentation weights
# ============================================================

# Baseline size per tier: self > direct > secondDegree > other >= suggested
BASELINE_WEIGHT: dict[Tier, float] = {
    Tier.SELF: 30.0,
    Tier.DIRECT: 15.0,
    Tier.SECOND_DEGREE: 8.0,
    Tier.OTHER: 6.0,
    Tier.SUGGESTED: 4.0,
}

# Size while a node is in the hovered node's neighbourhood
EXPANDED_WEIGHT: dict[Tier, float] = {
    Tier.SELF: 35.0,
    Tier.DIRECT: 20.0,
    Tier.SECOND_DEGREE: 15.0,
    Tier.OTHER: 12.0,
    Tier.SUGGESTED: 10.0,
}

# Size of the hovered node itself (self keeps its expanded size)
HOVERED_WEIGHT = 25.0


def baseline_weight(tier: Tier) -> float:
    return BASELINE_WEIGHT[tier]


def expanded_weight(tier: Tier, is_hovered: bool) -> float:
    if is_hovered and tier != Tier.SELF:
        return HOVERED_WEIGHT
    return EXPANDED_WEIGHT[tier]


# ============================================================
# Link strength
# ============================================================

FRIEND_SELF_STRENGTH = 0.9      # friend link with self as an endpoint
FRIEND_STRENGTH = 0.6           # friend link between two other users
PENDING_STRENGTH = 0.3
SUGGESTED_STRENGTH = 0.2
CONFIRMED_FRIEND_STRENGTH = 0.8  # friend link written by add_connection


def link_strength(rel_type: RelationshipType, touches_self: bool) -> float:
    """Strength in (0, 1] for a stored connection."""
    if rel_type == RelationshipType.FRIEND:
        return FRIEND_SELF_STRENGTH if touches_self else FRIEND_STRENGTH
    if rel_type == RelationshipType.PENDING:
        return PENDING_STRENGTH
    if rel_type == RelationshipType.SUGGESTED:
        return SUGGESTED_STRENGTH
    raise ValueError(f"unhandled relationship type: {rel_type!r}")


def pair_key(a: str, b: str) -> tuple[str, str]:
    """Order-independent key for an unordered pair of ids."""
    return (a, b) if a <= b else (b, a)


# ============================================================
# Store records
# ============================================================

@dataclass(frozen=True)
class UserRecord:
    """A roster row."""
    id: str
    display_name: str
    avatar_ref: str = ""
    zodiac_sign: Optional[str] = None
    is_online: bool = False
    last_active: Optional[str] = None
    bio: Optional[str] = None


@dataclass(frozen=True)
class ConnectionRecord:
    """A connection row. Stored directed, read as symmetric."""
    user_id: str
    connected_user_id: str
    connection_type: RelationshipType

    def touches(self, node_id: str) -> bool:
        return node_id in (self.user_id, self.connected_user_id)

    def other(self, node_id: str) -> Optional[str]:
        if self.user_id == node_id:
            return self.connected_user_id
        if self.connected_user_id == node_id:
            return self.user_id
        return None

    @property
    def key(self) -> tuple[str, str]:
        return pair_key(self.user_id, self.connected_user_id)


# ============================================================
# Derived graph model
# ============================================================

@dataclass
class GraphNode:
    """A user as seen by the renderer.

    tier, mutual_count and compatibility_score are fixed by the
    assembler. size_weight and highlighted are transient and only
    the highlight machine writes them.
    """
    id: str
    tier: Tier
    display_name: str = ""
    avatar_ref: str = ""
    zodiac_sign: Optional[str] = None
    mutual_count: Optional[int] = None
    compatibility_score: Optional[int] = None
    size_weight: float = 0.0
    highlighted: bool = False
    # Profile fields carried for the detail card
    is_online: bool = False
    last_active: Optional[str] = None
    bio: Optional[str] = None

    @property
    def is_self(self) -> bool:
        return self.tier == Tier.SELF

    def reset_presentation(self) -> None:
        self.size_weight = baseline_weight(self.tier)
        self.highlighted = False

    def to_dict(self) -> dict:
        d = asdict(self)
        d["tier"] = self.tier.value
        return d


@dataclass
class GraphLink:
    """A de-duplicated connection between two node ids."""
    source_id: str
    target_id: str
    relationship_type: RelationshipType
    strength: float

    @property
    def key(self) -> tuple[str, str]:
        return pair_key(self.source_id, self.target_id)

    def touches(self, node_id: str) -> bool:
        return node_id in (self.source_id, self.target_id)

    def other(self, node_id: str) -> Optional[str]:
        if self.source_id == node_id:
            return self.target_id
        if self.target_id == node_id:
            return self.source_id
        return None

    def to_dict(self) -> dict:
        return {
            "source_id": self.source_id,
            "target_id": self.target_id,
            "relationship_type": self.relationship_type.value,
            "strength": self.strength,
        }


@dataclass
class GraphStats:
    """Counts shown alongside the graph."""
    node_count: int
    link_count: int
    tier_counts: dict[str, int] = field(default_factory=dict)
