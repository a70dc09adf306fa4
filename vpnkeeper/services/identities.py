# vpnkeeper/services/identities.py
from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from vpnkeeper.core import totp
from vpnkeeper.core.config import Config
from vpnkeeper.core.errors import IntegrityViolation, NotFound
from vpnkeeper.db.models import Certificate, Identity, utcnow
from vpnkeeper.db.upsert import upsert
from vpnkeeper.schemas import UserCerts, UserSummary, format_ts
from vpnkeeper.services.audit import TOTP_SET, USER_DELETED, AuditLog
from vpnkeeper.services.certificates import CertificateLedger
from vpnkeeper.services.settings import SettingsStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Enrollment:
    email: str
    secret: str
    uri: str
    qr_png: bytes
    created: bool


class IdentityRegistry:
    """
    Usuarios identificados por email con su semilla TOTP.

    Borrar un usuario revoca en bloque sus certificados activos; los
    certificados siguen existiendo (y se pueden consultar por huella).
    """

    def __init__(self, session: AsyncSession, config: Config):
        self.session = session
        self.config = config

    async def exists(self, email: str) -> bool:
        count = (await self.session.execute(
            select(func.count()).select_from(Identity).where(Identity.email == email)
        )).scalar_one()
        return count > 0

    async def enroll_or_rotate(self, email: str) -> Enrollment:
        settings = await SettingsStore(self.session).load()
        key = totp.generate(settings.service_name, email)

        created = not await self.exists(email)
        now = utcnow()
        await upsert(
            self.session,
            Identity,
            keys=["email"],
            values={"email": email, "seed": key.secret, "created": now, "updated": now},
            update=["seed", "updated"],
        )
        await AuditLog(self.session).append(TOTP_SET, email, "")

        size = self.config.qr_size
        image = totp.render_qr(key.uri, size, size)
        logger.info("generated TOTP seed for '%s'", email)
        return Enrollment(email=email, secret=key.secret, uri=key.uri, qr_png=image, created=created)

    async def remove(self, email: str) -> list[str]:
        """Revoke every active cert of ``email``, drop the identity, and return the revoked fingerprints."""
        fps = list((await self.session.execute(
            select(Certificate.fingerprint)
            .where(Certificate.email == email, Certificate.revoked.is_(None))
            .order_by(Certificate.fingerprint)
        )).scalars().all())

        if fps:
            await self.session.execute(
                update(Certificate)
                .where(Certificate.email == email, Certificate.revoked.is_(None))
                .values(revoked=utcnow())
                .execution_options(synchronize_session=False)
            )
        await self.session.execute(delete(Identity).where(Identity.email == email))
        await AuditLog(self.session).append(USER_DELETED, email, f"{len(fps)} certs revoked")

        logger.info("cleared TOTP seed (deleted user) for '%s'", email)
        return fps

    async def describe(self, email: str) -> UserCerts:
        created = (await self.session.execute(
            select(Identity.created).where(Identity.email == email)
        )).scalars().all()
        if not created:
            logger.info("request for nonexistent user %s", email)
            raise NotFound(f"unknown user {email}")
        if len(created) > 1:
            logger.error("multiple database entries for user %s", email)
            raise IntegrityViolation(f"multiple identities for {email}")

        active, revoked = await CertificateLedger(self.session, self.config).list_for_user(email)
        return UserCerts(
            email=email,
            created=format_ts(created[0]),
            active_certs=active,
            revoked_certs=revoked,
        )

    async def list(self) -> list[UserSummary]:
        stmt = (
            select(
                Identity.email,
                func.count(Certificate.id).filter(Certificate.revoked.is_(None)),
                func.count(Certificate.id).filter(Certificate.revoked.is_not(None)),
            )
            .outerjoin(Certificate, Certificate.email == Identity.email)
            .group_by(Identity.email)
            .order_by(Identity.email)
        )
        rows = (await self.session.execute(stmt)).all()
        return [UserSummary(email=e, active_certs=a, revoked_certs=r) for e, a, r in rows]
