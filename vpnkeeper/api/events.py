from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from vpnkeeper.api.deps import get_session
from vpnkeeper.schemas import EventsOut
from vpnkeeper.services.audit import AuditLog

router = APIRouter()


@router.get("/events", response_model=EventsOut)
async def list_events(before: str | None = Query(None), s: AsyncSession = Depends(get_session)):
    async with s.begin():
        events = await AuditLog(s).list(before)
    return EventsOut(events=events)


@router.delete("/events", response_model=EventsOut)
async def clear_events(before: str | None = Query(None), s: AsyncSession = Depends(get_session)):
    """Devuelve el listado previo y vacía el log (rotación/extracción)."""
    async with s.begin():
        events = await AuditLog(s).clear(before)
    return EventsOut(events=events)
