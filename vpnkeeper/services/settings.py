# vpnkeeper/services/settings.py
from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from vpnkeeper.core.errors import IntegrityViolation
from vpnkeeper.db.models import Setting, utcnow
from vpnkeeper.db.upsert import upsert
from vpnkeeper.schemas import SettingsSnapshot
from vpnkeeper.services.whitelist import WhitelistGate

DEFAULT_SERVICE_NAME = "Bifröst VPN"
DEFAULT_CLIENT_LIMIT = 2
DEFAULT_CERT_DURATION = 90


def parse_domains(value: str) -> list[str]:
    return sorted({d for d in value.split(" ") if d})


def _parse_int(key: str, value: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise IntegrityViolation(f"setting {key} holds a non-integer value {value!r}")


class SettingsStore:
    """Service settings stored as one row per key, with fixed defaults for missing keys."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def load(self) -> SettingsSnapshot:
        values = {
            "service_name": DEFAULT_SERVICE_NAME,
            "client_limit": DEFAULT_CLIENT_LIMIT,
            "issued_cert_duration": DEFAULT_CERT_DURATION,
            "whitelisted_domains": [],
        }
        rows = (await self.session.execute(select(Setting.key, Setting.value))).all()
        for key, value in rows:
            if key == "ServiceName":
                values["service_name"] = value
            elif key == "ClientLimit":
                values["client_limit"] = _parse_int(key, value)
            elif key == "IssuedCertDuration":
                values["issued_cert_duration"] = _parse_int(key, value)
            elif key == "WhitelistedDomains":
                values["whitelisted_domains"] = parse_domains(value)

        # WhitelistedUsers no se guarda aquí: siempre sale de la tabla whitelist
        values["whitelisted_users"] = await WhitelistGate(self.session).list()
        try:
            return SettingsSnapshot(**values)
        except ValidationError as e:
            raise IntegrityViolation(f"stored settings are invalid: {e}") from e

    async def store(self, snapshot: SettingsSnapshot) -> None:
        rows = {
            "ServiceName": snapshot.service_name,
            "ClientLimit": str(snapshot.client_limit),
            "IssuedCertDuration": str(snapshot.issued_cert_duration),
            "WhitelistedDomains": " ".join(snapshot.whitelisted_domains),
        }
        now = utcnow()
        for key, value in rows.items():
            await upsert(
                self.session,
                Setting,
                keys=["key"],
                values={"key": key, "value": value, "modified": now},
                update=["value", "modified"],
            )
