"""
Friend Graph API Service

FastAPI wrapper around the relationship-graph engine. Reads and writes
the hosted store when SUPABASE_URL is set (falls back to an in-memory
demo roster otherwise) and serves the {nodes, links} model plus the
hover / select / add / remove hooks to the renderer.
"""

import os
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from friend_graph.core.errors import LoadFailure, MutationFailure
from friend_graph.interface.interface import NetworkSession
from friend_graph.store.client import create_store

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"),
                    format="%(asctime)s %(levelname)s %(name)s: %(message)s")


# ============================================================
# Global State
# ============================================================

session: NetworkSession = None
SELF_USER_ID = os.getenv("SELF_USER_ID") or None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Connect the store and run the first load."""
    global session

    store = create_store()
    session = NetworkSession(store, self_id=SELF_USER_ID)

    try:
        await session.reload()
    except LoadFailure as e:
        print(f"Initial load failed: {e} (retry with POST /graph/reload)")

    print("Friend Graph booted")
    print(f"  Backend: {store.kind}")
    if session.graph:
        print(f"  Self: {session.graph.self_id}")
        print(f"  Nodes: {session.graph.node_count}, Links: {session.graph.link_count}")
    yield
    print("Friend Graph shutting down")


app = FastAPI(
    title="Friend Graph",
    description="Tiered relationship graph with optimistic connection edits",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================
# Request/Response Models
# ============================================================

class HoverRequest(BaseModel):
    node_id: Optional[str] = None

class SelectRequest(BaseModel):
    node_id: str

class ConnectionRequest(BaseModel):
    target_id: str


def _require_graph():
    if session is None or not session.is_loaded:
        raise HTTPException(409, "Graph not loaded")


def _stats_dict() -> dict:
    stats = session.stats()
    return {
        "nodes": stats.node_count,
        "links": stats.link_count,
        "tiers": stats.tier_counts,
    }


# ============================================================
# Health
# ============================================================

@app.get("/")
async def root():
    loaded = session is not None and session.is_loaded
    return {
        "service": "Friend Graph",
        "version": "0.1.0",
        "backend": session.store.kind if session else None,
        "self_id": session.graph.self_id if loaded else None,
        "nodes": session.graph.node_count if loaded else 0,
        "links": session.graph.link_count if loaded else 0,
        "status": "operational" if loaded else "not_loaded",
    }


# ============================================================
# Graph
# ============================================================

@app.post("/graph/reload")
async def reload_graph():
    try:
        graph = await session.reload()
    except LoadFailure as e:
        raise HTTPException(502, str(e))
    if graph is None:
        return {"status": "superseded"}
    return {"status": "loaded", **_stats_dict(),
            "skipped_connections": session.last_load.skipped_connections}

@app.get("/graph")
async def get_graph():
    _require_graph()
    return session.snapshot()

@app.get("/graph/stats")
async def graph_stats():
    _require_graph()
    return _stats_dict()

@app.post("/graph/hover")
async def hover(req: HoverRequest):
    _require_graph()
    return session.on_node_hover(req.node_id).to_dict()

@app.post("/graph/select")
async def select(req: SelectRequest):
    _require_graph()
    try:
        detail = session.on_node_click(req.node_id)
    except KeyError:
        raise HTTPException(404, f"Node {req.node_id} not found")
    return detail.to_dict()


# ============================================================
# Connections
# ============================================================

@app.post("/connections/add")
async def add_connection(req: ConnectionRequest):
    _require_graph()
    try:
        record = await session.on_request_add_connection(req.target_id)
    except MutationFailure as e:
        raise HTTPException(400 if e.rejected else 502, str(e))
    return record.to_dict()

@app.post("/connections/remove")
async def remove_connection(req: ConnectionRequest):
    _require_graph()
    try:
        record = await session.on_request_remove_connection(req.target_id)
    except MutationFailure as e:
        raise HTTPException(400 if e.rejected else 502, str(e))
    return record.to_dict()

@app.get("/connections/history")
async def mutation_history(limit: int = Query(50, ge=0)):
    _require_graph()
    history = session.reconciler.history
    return [r.to_dict() for r in history[max(len(history) - limit, 0):]]


# ============================================================
# Errors
# ============================================================

@app.get("/error")
async def current_error():
    if session is None or session.current_error is None:
        return {"error": None}
    return {"error": session.current_error.to_dict()}

@app.delete("/error")
async def dismiss_error():
    if session is not None:
        session.dismiss_error()
    return {"error": None}


# ============================================================
# Run
# ============================================================

if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8080))
    uvicorn.run("main:app", host="0.0.0.0", port=port, reload=False)
