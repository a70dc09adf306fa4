# vpnkeeper/schemas.py
"""Snapshots returned by the services and serialized on the wire.

Wire keys are PascalCase (``ActiveCerts``, ``TOTPURL``...), Python attributes
stay snake_case; every model accepts both on input.
"""
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_pascal

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"

# 100 años: muy por debajo del máximo de fecha x509 (9999-12-31)
MAX_CERT_DURATION = 36500


def format_ts(dt: datetime | None) -> str:
    return dt.strftime(TIMESTAMP_FORMAT) if dt else ""


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_pascal, populate_by_name=True, frozen=True)


class CertOut(WireModel):
    fingerprint: str
    created: str
    expires: str
    revoked: str = ""
    description: str


class CertDetail(CertOut):
    email: str


class UserCerts(WireModel):
    email: str
    created: str = ""
    active_certs: list[CertOut] = Field(default_factory=list)
    revoked_certs: list[CertOut] = Field(default_factory=list)


class UserSummary(WireModel):
    email: str
    active_certs: int
    revoked_certs: int


class UsersOut(WireModel):
    users: list[UserSummary]


class CertsOut(WireModel):
    certs: list[UserCerts]


class EnrollmentOut(WireModel):
    email: str
    totpurl: str = Field(alias="TOTPURL")


class RemovalOut(WireModel):
    revoked_certs: list[str]


class IssueIn(WireModel):
    email: str
    description: str = ""


class IssueOut(WireModel):
    fingerprint: str
    ovpn_data_url: str = Field(alias="OVPNDataURL")


class Revocation(WireModel):
    email: str = ""
    fingerprint: str = ""


class EventOut(WireModel):
    event: str
    email: str
    value: str
    timestamp: str


class EventsOut(WireModel):
    events: list[EventOut]


class WhitelistOut(WireModel):
    users: list[str]


class SettingsSnapshot(WireModel):
    service_name: str
    client_limit: int = Field(ge=0)
    issued_cert_duration: int = Field(ge=1, le=MAX_CERT_DURATION)
    whitelisted_domains: list[str] = Field(default_factory=list)
    whitelisted_users: list[str] = Field(default_factory=list)

    @field_validator("whitelisted_domains")
    @classmethod
    def _domains_are_tokens(cls, v: list[str]) -> list[str]:
        # se guardan separados por espacios: un dominio no puede contener blancos
        if any(not d or d != "".join(d.split()) for d in v):
            raise ValueError("domains must be non-empty and contain no whitespace")
        return sorted(set(v))
