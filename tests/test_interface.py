"""Tests for the session layer, zodiac affinity and the HTTP API.

The HTTP tests run against the seeded demo roster (Anna is self):
  direct         Boris, Chloe, Dmitri
  secondDegree   Elena (friends with Boris and Chloe)
  suggested      Felix
  other          Galina (pending), Hugo
"""

import asyncio
import os

import httpx
from fastapi.testclient import TestClient

from friend_graph.core.errors import ErrorKind, LoadFailure, MutationFailure, StoreError
from friend_graph.core.reconciler import MutationOutcome
from friend_graph.graph.schema import Tier
from friend_graph.interface.highlight import HoverState
from friend_graph.interface.interface import NetworkSession, profile_path
from friend_graph.profile.zodiac import zodiac_affinity, lookup
from friend_graph.store.client import InMemoryStore, SupabaseStore
from friend_graph.store.demo import demo_store


# ============================================================
# Helpers
# ============================================================

class SlowFirstStore(InMemoryStore):
    """First roster fetch is slow and returns an extra user."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.calls = 0

    async def fetch_users(self):
        self.calls += 1
        if self.calls == 1:
            await asyncio.sleep(0.05)
            return await super().fetch_users() + [{"id": "stale_user"}]
        return await super().fetch_users()


class FlakyStore(InMemoryStore):
    """Reads fail while down is set; writes always fail."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.down = False

    async def fetch_users(self):
        if self.down:
            raise StoreError("roster unavailable", status_code=503)
        return await super().fetch_users()

    async def upsert_connection(self, user_id, connected_user_id, connection_type):
        raise StoreError("write refused", status_code=503)

    async def delete_connection_pair(self, a, b):
        raise StoreError("delete refused", status_code=503)


def demo_rows():
    store = demo_store()
    return store.users, store.connections

def loaded_session(**kwargs) -> NetworkSession:
    session = NetworkSession(demo_store(), **kwargs)
    asyncio.run(session.reload())
    return session


# ============================================================
# Session
# ============================================================

def test_session_loads_demo_tiers():
    session = loaded_session()
    g = session.graph
    assert g.self_id == "u_anna"
    assert {n.id for n in g.get_nodes_by_tier(Tier.DIRECT)} == {"u_boris", "u_chloe", "u_dmitri"}
    elena = g.get_node("u_elena")
    assert elena.tier == Tier.SECOND_DEGREE and elena.mutual_count == 2
    felix = g.get_node("u_felix")
    assert felix.tier == Tier.SUGGESTED and felix.compatibility_score == 0
    assert g.get_node("u_galina").tier == Tier.OTHER
    assert g.get_node("u_hugo").tier == Tier.OTHER
    assert session.current_error is None
    print("  ✓ session_loads_demo_tiers")

def test_session_explicit_self():
    session = loaded_session(self_id="u_boris")
    assert session.graph.self_id == "u_boris"
    assert session.graph.get_node("u_anna").tier == Tier.DIRECT
    print("  ✓ session_explicit_self")

def test_snapshot_before_load():
    session = NetworkSession(demo_store())
    assert session.snapshot() == {"self_id": None, "nodes": [], "links": []}
    assert session.stats() is None
    assert not session.is_loaded
    print("  ✓ snapshot_before_load")

def test_newest_load_wins():
    session = NetworkSession(SlowFirstStore(*demo_rows()))

    async def two_loads():
        return await asyncio.gather(session.reload(), session.reload())

    first, second = asyncio.run(two_loads())
    assert first is None
    assert second is session.graph
    assert not session.graph.has_node("stale_user")
    print("  ✓ newest_load_wins")

def test_load_failure_keeps_previous_graph():
    store = FlakyStore(*demo_rows())
    session = NetworkSession(store)
    graph = asyncio.run(session.reload())
    store.down = True
    try:
        asyncio.run(session.reload())
        assert False, "load failure not surfaced"
    except LoadFailure as e:
        assert e.stage == "roster"
    assert session.graph is graph
    assert session.current_error.kind == ErrorKind.LOAD_FAILURE
    store.down = False
    asyncio.run(session.reload())
    assert session.current_error is None
    print("  ✓ load_failure_keeps_previous_graph")

def test_unreadable_store_body_fills_error_slot():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"<html>gateway</html>")

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    session = NetworkSession(SupabaseStore(url="https://db.example.test", client=client))
    try:
        asyncio.run(session.reload())
        assert False, "html body accepted"
    except LoadFailure as e:
        assert isinstance(e.cause, StoreError)
    assert session.current_error.kind == ErrorKind.LOAD_FAILURE
    assert not session.is_loaded
    print("  ✓ unreadable_store_body_fills_error_slot")

def test_mutation_failure_sets_error_slot():
    session = NetworkSession(FlakyStore(*demo_rows()))
    asyncio.run(session.reload())
    before = session.graph.compute_state_hash()
    try:
        asyncio.run(session.on_request_add_connection("u_elena"))
        assert False, "failed write not surfaced"
    except MutationFailure:
        pass
    assert session.graph.compute_state_hash() == before
    err = session.current_error
    assert err.kind == ErrorKind.MUTATION_FAILURE
    assert err.target_id == "u_elena"
    assert err.retryable
    session.dismiss_error()
    assert session.current_error is None
    print("  ✓ mutation_failure_sets_error_slot")

def test_rejected_mutation_not_retryable():
    session = loaded_session()
    try:
        asyncio.run(session.on_request_remove_connection("u_anna"))
        assert False, "self target accepted"
    except MutationFailure as e:
        assert e.rejected
    assert session.current_error.retryable is False
    print("  ✓ rejected_mutation_not_retryable")

def test_mutation_before_load():
    session = NetworkSession(demo_store())
    try:
        asyncio.run(session.on_request_add_connection("u_boris"))
        assert False, "mutation accepted without a graph"
    except RuntimeError:
        pass
    print("  ✓ mutation_before_load")

def test_add_then_reload_promotes_to_direct():
    session = loaded_session()
    record = asyncio.run(session.on_request_add_connection("u_elena"))
    assert record.outcome == MutationOutcome.COMMITTED
    assert session.graph.get_node("u_elena").tier == Tier.SECOND_DEGREE
    asyncio.run(session.reload())
    assert session.graph.get_node("u_elena").tier == Tier.DIRECT
    print("  ✓ add_then_reload_promotes_to_direct")

def test_click_navigates_to_profile():
    visited = []
    session = loaded_session(navigate=visited.append)
    detail = session.on_node_click("u_boris")
    assert visited == ["/profile/u_boris"]
    assert detail.profile_path == profile_path("u_boris")
    assert session.highlight.selected_id == "u_boris"
    session.on_node_click("u_anna")
    assert visited == ["/profile/u_boris"]
    print("  ✓ click_navigates_to_profile")

def test_detail_zodiac_affinity():
    session = loaded_session()
    assert session.detail("u_boris").zodiac_affinity == 5     # aries lists leo
    assert session.detail("u_chloe").zodiac_affinity == 3     # fire / air
    assert session.detail("u_dmitri").zodiac_affinity == 2    # fire / earth
    assert session.detail("u_hugo").zodiac_affinity is None   # no sign
    me = session.detail("u_anna")
    assert me.zodiac_affinity is None and me.mutual_count is None
    assert me.profile_path is None
    try:
        session.detail("ghost")
        assert False, "unknown node detail"
    except KeyError:
        pass
    print("  ✓ detail_zodiac_affinity")

def test_detail_profile_fields():
    session = loaded_session()
    boris = session.detail("u_boris")
    assert boris.is_online is True
    assert boris.bio.startswith("Climbing")
    hugo = session.detail("u_hugo").to_dict()
    assert hugo["is_online"] is False
    assert hugo["bio"] is None and hugo["last_active"] is None
    print("  ✓ detail_profile_fields")

def test_hover_through_session():
    session = loaded_session()
    result = session.on_node_hover("u_boris")
    assert result.state == HoverState.HOVERED
    assert result.connected_nodes == {"u_boris", "u_anna", "u_elena"}
    assert session.on_node_hover(None).state == HoverState.IDLE
    print("  ✓ hover_through_session")


# ============================================================
# Zodiac
# ============================================================

def test_zodiac_affinity_scale():
    assert zodiac_affinity("aries", "leo") == 5
    assert zodiac_affinity("Aries", " LEO ") == 5
    assert zodiac_affinity("cancer", "scorpio") == 5
    assert zodiac_affinity("aries", "aries") == 4
    assert zodiac_affinity("taurus", "aries") == 2
    assert zodiac_affinity("virgo", "aquarius") == 1
    assert zodiac_affinity("nope", "leo") == 0
    assert zodiac_affinity("aries", "nope") == 1
    assert lookup("pisces").element == "Water"
    assert lookup(None) is None
    print("  ✓ zodiac_affinity_scale")


# ============================================================
# HTTP API
# ============================================================

def make_client() -> TestClient:
    os.environ.pop("SUPABASE_URL", None)
    import main
    main.SELF_USER_ID = None
    return TestClient(main.app)


def test_api_root_and_graph():
    with make_client() as client:
        root = client.get("/").json()
        assert root["status"] == "operational"
        assert root["self_id"] == "u_anna"
        assert root["backend"] == "in-memory"
        graph = client.get("/graph").json()
        assert len(graph["nodes"]) == 8
        tiers = {n["id"]: n["tier"] for n in graph["nodes"]}
        assert tiers["u_elena"] == "secondDegree"
        stats = client.get("/graph/stats").json()
        assert stats["tiers"]["direct"] == 3
    print("  ✓ api_root_and_graph")

def test_api_hover_and_select():
    with make_client() as client:
        hovered = client.post("/graph/hover", json={"node_id": "u_boris"}).json()
        assert hovered["state"] == "hovered"
        assert "u_elena" in hovered["connected_nodes"]
        idle = client.post("/graph/hover", json={}).json()
        assert idle["state"] == "idle"
        detail = client.post("/graph/select", json={"node_id": "u_elena"}).json()
        assert detail["profile_path"] == "/profile/u_elena"
        assert detail["mutual_count"] == 2
        assert client.post("/graph/select", json={"node_id": "ghost"}).status_code == 404
    print("  ✓ api_hover_and_select")

def test_api_connection_edits():
    with make_client() as client:
        added = client.post("/connections/add", json={"target_id": "u_galina"}).json()
        assert added["outcome"] == "committed"
        assert added["before"]["relationship_type"] == "pending"
        assert added["after"]["relationship_type"] == "friend"
        removed = client.post("/connections/remove", json={"target_id": "u_dmitri"}).json()
        assert removed["outcome"] == "committed"
        noop = client.post("/connections/remove", json={"target_id": "u_hugo"}).json()
        assert noop["outcome"] == "noop"
        assert client.post("/connections/add", json={"target_id": "u_anna"}).status_code == 400
        history = client.get("/connections/history").json()
        assert [h["outcome"] for h in history] == ["committed", "committed", "noop", "rejected"]
        assert client.get("/connections/history?limit=0").json() == []
        last = client.get("/connections/history?limit=1").json()
        assert [h["outcome"] for h in last] == ["rejected"]
        assert client.get("/connections/history?limit=-1").status_code == 422
        reloaded = client.post("/graph/reload").json()
        assert reloaded["status"] == "loaded"
        assert reloaded["tiers"]["direct"] == 3   # +galina, -dmitri
    print("  ✓ api_connection_edits")

def test_api_failed_write_and_error_slot():
    import main
    with make_client() as client:
        main.session.reconciler.store = FlakyStore()
        resp = client.post("/connections/add", json={"target_id": "u_elena"})
        assert resp.status_code == 502
        err = client.get("/error").json()["error"]
        assert err["kind"] == "mutation_failure"
        assert err["target_id"] == "u_elena"
        graph = client.get("/graph").json()
        keys = {frozenset((l["source_id"], l["target_id"])) for l in graph["links"]}
        assert frozenset(("u_anna", "u_elena")) not in keys
        assert client.delete("/error").json() == {"error": None}
        assert client.get("/error").json() == {"error": None}
    print("  ✓ api_failed_write_and_error_slot")


# ============================================================
# Run all
# ============================================================

if __name__ == "__main__":
    print("Testing session and API...\n")

    print("Session:")
    test_session_loads_demo_tiers()
    test_session_explicit_self()
    test_snapshot_before_load()
    test_newest_load_wins()
    test_load_failure_keeps_previous_graph()
    test_unreadable_store_body_fills_error_slot()
    test_mutation_failure_sets_error_slot()
    test_rejected_mutation_not_retryable()
    test_mutation_before_load()
    test_add_then_reload_promotes_to_direct()
    test_click_navigates_to_profile()
    test_detail_zodiac_affinity()
    test_detail_profile_fields()
    test_hover_through_session()

    print("\nZodiac:")
    test_zodiac_affinity_scale()

    print("\nHTTP API:")
    test_api_root_and_graph()
    test_api_hover_and_select()
    test_api_connection_edits()
    test_api_failed_write_and_error_slot()

    print("\n" + "=" * 50)
    print("ALL INTERFACE TESTS PASSED ✓")
    print("=" * 50)
