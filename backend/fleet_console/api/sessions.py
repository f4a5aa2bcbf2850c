"""UI session lifecycle endpoints."""

from fastapi import APIRouter, HTTPException

from fleet_console.api.render import session_view
from fleet_console.core.ui_session import SessionRegistry, UISession
from fleet_console.schemas.views import SessionView

router = APIRouter(prefix="/api/sessions", tags=["sessions"])

# Will be set by main.py
registry: SessionRegistry | None = None


def lookup(session_id: str) -> UISession:
    """Resolve a session id for any router, 404 if unknown."""
    if registry is None:
        raise HTTPException(status_code=503, detail="Service not ready")
    try:
        return registry.get(session_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="Session not found")


@router.post("", response_model=SessionView, status_code=201)
async def create_session():
    """Open a UI session for one dashboard tab."""
    if registry is None:
        raise HTTPException(status_code=503, detail="Service not ready")
    return session_view(registry.create())


@router.get("/{session_id}", response_model=SessionView)
async def get_session(session_id: str):
    return session_view(lookup(session_id))


@router.delete("/{session_id}", status_code=204)
async def drop_session(session_id: str):
    lookup(session_id)
    registry.drop(session_id)
