# vpnkeeper/services/whitelist.py
import logging

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from vpnkeeper.db.models import WhitelistEntry, utcnow
from vpnkeeper.db.upsert import upsert

logger = logging.getLogger(__name__)


class WhitelistGate:
    # Sin eventos de auditoría: ni add ni remove dejan rastro en el log.

    def __init__(self, session: AsyncSession):
        self.session = session

    async def list(self) -> list[str]:
        res = await self.session.execute(select(WhitelistEntry.email).order_by(WhitelistEntry.email))
        return [email for email in res.scalars().all() if email]

    async def add(self, email: str) -> None:
        await upsert(
            self.session,
            WhitelistEntry,
            keys=["email"],
            values={"email": email, "modified": utcnow()},
            update=["modified"],
        )
        logger.info("added '%s' to user whitelist", email)

    async def remove(self, email: str) -> None:
        await self.session.execute(delete(WhitelistEntry).where(WhitelistEntry.email == email))
        logger.info("deleted '%s' from user whitelist", email)
