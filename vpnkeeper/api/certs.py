# vpnkeeper/api/certs.py
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from vpnkeeper.api.deps import get_config, get_session
from vpnkeeper.core.bundle import data_url
from vpnkeeper.core.config import Config
from vpnkeeper.core.errors import InvalidArgument, NotFound
from vpnkeeper.schemas import CertDetail, CertsOut, IssueIn, IssueOut, Revocation, UserCerts
from vpnkeeper.services.certificates import CertificateLedger
from vpnkeeper.services.identities import IdentityRegistry

router = APIRouter()


@router.get("/certs", response_model=CertsOut)
@router.get("/certs/", response_model=CertsOut, include_in_schema=False)
async def list_all_certs(s: AsyncSession = Depends(get_session), config: Config = Depends(get_config)):
    async with s.begin():
        groups = await CertificateLedger(s, config).list_all()
    return CertsOut(certs=groups)


@router.post("/certs/")
async def issue_without_user():
    raise InvalidArgument("missing user on POST")


@router.get("/certs/{email}", response_model=UserCerts)
async def list_user_certs(email: str, s: AsyncSession = Depends(get_session), config: Config = Depends(get_config)):
    async with s.begin():
        try:
            return await IdentityRegistry(s, config).describe(email)
        except NotFound:
            # usuario borrado pero con certificados: se devuelven con Created vacío
            active, revoked = await CertificateLedger(s, config).list_for_user(email)
            if not active and not revoked:
                raise
            return UserCerts(email=email, active_certs=active, revoked_certs=revoked)


@router.post("/certs/{email}", response_model=IssueOut, status_code=status.HTTP_201_CREATED)
async def issue_cert(
    email: str,
    body: IssueIn,
    s: AsyncSession = Depends(get_session),
    config: Config = Depends(get_config),
):
    if body.email != email:
        raise InvalidArgument(f"mismatched URL/JSON request: {email} != {body.email}")
    async with s.begin():
        issued = await CertificateLedger(s, config).issue(email, body.description)
    return IssueOut(
        fingerprint=issued.fingerprint,
        ovpn_data_url=data_url("image/ovpn", issued.bundle.encode()),
    )


@router.api_route("/cert/", methods=["GET", "DELETE"])
async def missing_fingerprint():
    raise InvalidArgument("missing fingerprint")


@router.get("/cert/{fingerprint}", response_model=CertDetail)
async def get_cert(fingerprint: str, s: AsyncSession = Depends(get_session), config: Config = Depends(get_config)):
    async with s.begin():
        return await CertificateLedger(s, config).describe(fingerprint)


@router.delete("/cert/{fingerprint}", response_model=Revocation)
async def revoke_cert(fingerprint: str, s: AsyncSession = Depends(get_session), config: Config = Depends(get_config)):
    async with s.begin():
        return await CertificateLedger(s, config).revoke(fingerprint)
