# vpnkeeper/services/audit.py
from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from vpnkeeper.core.errors import InvalidArgument
from vpnkeeper.db.models import Event
from vpnkeeper.schemas import EventOut, format_ts

logger = logging.getLogger(__name__)

PAGE_SIZE = 25
ALL = "all"

TOTP_SET = "TOTP set"
USER_DELETED = "user deleted"
CERT_ISSUED = "certificate issued"
CERT_REVOKED = "certificate revoked"
LOG_RESET = "events log reset"

_CURSOR_FORMATS = ("%Y-%m-%dT%H:%M:%SZ", "%Y-%m-%dT%H:%M:%S.%fZ")


def parse_cursor(before: str) -> datetime:
    """Parse a ``before`` pagination cursor; seconds or microseconds precision, UTC."""
    for fmt in _CURSOR_FORMATS:
        try:
            return datetime.strptime(before, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    raise InvalidArgument(f"malformed 'before' cursor: {before!r}")


class AuditLog:
    """Append-only event trail. Rows are inserted or cleared in bulk, never updated."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def append(self, event: str, email: str = "", value: str = "") -> None:
        self.session.add(Event(event=event, email=email, value=value))
        await self.session.flush()

    async def list(self, before: str | None = None) -> list[EventOut]:
        stmt = select(Event).order_by(Event.ts.desc(), Event.id.desc())
        if not before:
            stmt = stmt.limit(PAGE_SIZE)
        elif before != ALL:
            stmt = stmt.where(Event.ts < parse_cursor(before)).limit(PAGE_SIZE)

        rows = (await self.session.execute(stmt)).scalars().all()
        return [
            EventOut(event=r.event, email=r.email, value=r.value, timestamp=format_ts(r.ts))
            for r in rows
        ]

    async def clear(self, before: str | None = None) -> list[EventOut]:
        """Vacía el log y deja un único evento de reset. Devuelve el listado previo."""
        listing = await self.list(before)
        res = await self.session.execute(delete(Event))
        await self.append(LOG_RESET, "", f"{res.rowcount} events cleared")
        logger.info("cleared event log (%d events)", res.rowcount)
        return listing
