"""Seed data for running the service without a hosted store."""

from friend_graph.store.client import InMemoryStore


DEMO_USERS = [
    ("u_anna", "Anna", "aries"),
    ("u_boris", "Boris", "leo"),
    ("u_chloe", "Chloe", "libra"),
    ("u_dmitri", "Dmitri", "taurus"),
    ("u_elena", "Elena", "pisces"),
    ("u_felix", "Felix", "gemini"),
    ("u_galina", "Galina", "capricorn"),
    ("u_hugo", "Hugo", None),
]

DEMO_CONNECTIONS = [
    ("u_anna", "u_boris", "friend"),
    ("u_chloe", "u_anna", "friend"),
    ("u_anna", "u_dmitri", "friend"),
    ("u_boris", "u_elena", "friend"),
    ("u_chloe", "u_elena", "friend"),
    ("u_anna", "u_felix", "suggested"),
    ("u_felix", "u_hugo", "friend"),
    ("u_galina", "u_anna", "pending"),
    ("u_hugo", "u_galina", "friend"),
]

DEMO_ONLINE = {"u_boris", "u_elena"}

DEMO_BIOS = {
    "u_boris": "Climbing on weekends, chess on weekdays.",
    "u_elena": "Painter. Always up for a gallery walk.",
}


def demo_store() -> InMemoryStore:
    """Anna is listed first, so she is self when SELF_USER_ID is unset."""
    users = [{"id": uid, "name": name, "avatar": f"https://api.dicebear.com/7.x/avataaars/svg?seed={name}",
              "zodiac_sign": sign, "is_online": uid in DEMO_ONLINE,
              "bio": DEMO_BIOS.get(uid)}
             for uid, name, sign in DEMO_USERS]
    connections = [{"user_id": a, "connected_user_id": b, "connection_type": t}
                   for a, b, t in DEMO_CONNECTIONS]
    return InMemoryStore(users, connections)
