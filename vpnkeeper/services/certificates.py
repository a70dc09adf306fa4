# vpnkeeper/services/certificates.py
from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import timedelta
from itertools import groupby

from fastapi.concurrency import run_in_threadpool
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from vpnkeeper.core.bundle import read_secret, render_bundle
from vpnkeeper.core.ca import CertificateAuthority, ClientKeypair, Subject
from vpnkeeper.core.config import Config
from vpnkeeper.core.errors import Conflict, IntegrityViolation, InvalidArgument, NotFound
from vpnkeeper.db.models import Certificate, Identity, utcnow
from vpnkeeper.schemas import CertDetail, CertOut, Revocation, SettingsSnapshot, UserCerts, format_ts
from vpnkeeper.services.audit import CERT_ISSUED, CERT_REVOKED, AuditLog
from vpnkeeper.services.settings import SettingsStore

logger = logging.getLogger(__name__)

SERIAL_BITS = 128


def allocate_serial() -> str:
    """
    Serial aleatorio de 128 bits en hex. Puede colisionar en teoría; las
    revocaciones van por huella, no por serial, así que no se comprueba.
    """
    serial = 0
    while not serial:  # x509 exige un serial positivo
        serial = secrets.randbits(SERIAL_BITS)
    return f"{serial:x}"


@dataclass(frozen=True)
class IssuedBundle:
    email: str
    fingerprint: str
    description: str
    bundle: str


def _cert_out(c: Certificate) -> CertOut:
    return CertOut(
        fingerprint=c.fingerprint,
        created=format_ts(c.created),
        expires=format_ts(c.expires),
        revoked=format_ts(c.revoked),
        description=c.description,
    )


def partition(certs) -> tuple[list[CertOut], list[CertOut]]:
    """Split into (active, revoked), each ordered by description."""
    ordered = sorted(certs, key=lambda c: (c.description, c.fingerprint))
    active = [_cert_out(c) for c in ordered if c.revoked is None]
    revoked = [_cert_out(c) for c in ordered if c.revoked is not None]
    return active, revoked


class CertificateLedger:
    def __init__(self, session: AsyncSession, config: Config):
        self.session = session
        self.config = config

    async def issue(self, email: str, description: str) -> IssuedBundle:
        if not description:
            raise InvalidArgument("description is required")
        await self._require_identity(email)

        settings = await SettingsStore(self.session).load()
        serial = allocate_serial()
        keypair, chain = await run_in_threadpool(self._sign, email, settings, serial)

        tls_auth = read_secret(self.config.tls_auth_path)
        bundle = render_bundle(
            self.config.ovpn_template_path,
            ca=chain,
            cert=keypair.cert_pem,
            key=keypair.key_pem,
            tls_auth=tls_auth,
        )

        now = utcnow()
        self.session.add(Certificate(
            email=email,
            fingerprint=keypair.fingerprint,
            description=description,
            created=now,
            expires=now + timedelta(days=settings.issued_cert_duration),
        ))
        try:
            await self.session.flush()
        except IntegrityError as e:
            raise Conflict(f"fingerprint {keypair.fingerprint} already recorded") from e

        await AuditLog(self.session).append(CERT_ISSUED, email, f"{keypair.fingerprint} - {description}")
        logger.info("issued new certificate '%s' for '%s'", keypair.fingerprint, email)
        return IssuedBundle(email=email, fingerprint=keypair.fingerprint, description=description, bundle=bundle)

    def _sign(self, email: str, settings: SettingsSnapshot, serial: str) -> tuple[ClientKeypair, bytes]:
        # se carga la CA en cada emisión: nada de claves en memoria entre peticiones
        authority = CertificateAuthority.load(
            self.config.ca_cert_path, self.config.ca_key_path, self.config.ca_key_password
        )
        keypair = authority.issue_client_certificate(
            settings.issued_cert_duration,
            Subject(org=settings.service_name, common_name=email),
            int(serial, 16),
            self.config.client_key_bits,
        )
        return keypair, authority.export_chain_pem()

    async def _require_identity(self, email: str) -> None:
        count = (await self.session.execute(
            select(func.count()).select_from(Identity).where(Identity.email == email)
        )).scalar_one()
        if count == 0:
            logger.warning("attempt to issue cert for nonexistent user %s", email)
            raise NotFound(f"unknown user {email}")
        if count > 1:
            raise IntegrityViolation(f"multiple identities for {email}")

    async def revoke(self, fingerprint: str) -> Revocation:
        """
        Revoca un certificado por huella. Huella desconocida -> Revocation vacía,
        sin error. Revocar dos veces no escribe nada la segunda vez.
        """
        rows = (await self.session.execute(
            select(Certificate.email, Certificate.revoked).where(Certificate.fingerprint == fingerprint)
        )).all()
        if not rows:
            logger.warning("attempt to revoke nonexistent cert %s", fingerprint)
            return Revocation()
        if len(rows) > 1:
            raise IntegrityViolation(f"multiple certificates for fingerprint {fingerprint}")

        email, revoked = rows[0]
        if revoked is None:
            res = await self.session.execute(
                update(Certificate)
                .where(Certificate.fingerprint == fingerprint, Certificate.revoked.is_(None))
                .values(revoked=utcnow())
                .execution_options(synchronize_session=False)
            )
            if res.rowcount:
                await AuditLog(self.session).append(CERT_REVOKED, email, fingerprint)
                logger.info("revoked certificate '%s'", fingerprint)
        return Revocation(email=email, fingerprint=fingerprint)

    async def describe(self, fingerprint: str) -> CertDetail:
        rows = (await self.session.execute(
            select(Certificate).where(Certificate.fingerprint == fingerprint)
        )).scalars().all()
        if not rows:
            logger.warning("request for nonexistent fingerprint %s", fingerprint)
            raise NotFound(f"unknown fingerprint {fingerprint}")
        if len(rows) > 1:
            raise IntegrityViolation(f"multiple certificates for fingerprint {fingerprint}")
        c = rows[0]
        return CertDetail(email=c.email, **_cert_out(c).model_dump())

    async def list_for_user(self, email: str) -> tuple[list[CertOut], list[CertOut]]:
        # incluye certificados de usuarios ya borrados
        rows = (await self.session.execute(
            select(Certificate).where(Certificate.email == email)
        )).scalars().all()
        return partition(rows)

    async def list_all(self) -> list[UserCerts]:
        # JOIN interno: los certificados sin usuario vivo no aparecen
        stmt = (
            select(Identity.email, Identity.created, Certificate)
            .join(Certificate, Certificate.email == Identity.email)
            .order_by(Identity.email)
        )
        rows = (await self.session.execute(stmt)).all()

        groups = []
        for (email, created), items in groupby(rows, key=lambda r: (r[0], r[1])):
            active, revoked = partition(r[2] for r in items)
            groups.append(UserCerts(
                email=email,
                created=format_ts(created),
                active_certs=active,
                revoked_certs=revoked,
            ))
        return groups
