# vpnkeeper/api/users.py
from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from vpnkeeper.api.deps import get_config, get_session
from vpnkeeper.core.bundle import data_url
from vpnkeeper.core.config import Config
from vpnkeeper.core.errors import InvalidArgument, NotFound
from vpnkeeper.schemas import EnrollmentOut, RemovalOut, UserCerts, UsersOut
from vpnkeeper.services.identities import IdentityRegistry

router = APIRouter()


@router.get("/users", response_model=UsersOut)
async def list_users(s: AsyncSession = Depends(get_session), config: Config = Depends(get_config)):
    async with s.begin():
        users = await IdentityRegistry(s, config).list()
    return UsersOut(users=users)


@router.api_route("/user/", methods=["GET", "PUT", "DELETE"])
async def missing_user():
    raise InvalidArgument("missing email in path")


@router.get("/user/{email}", response_model=UserCerts)
async def get_user(email: str, s: AsyncSession = Depends(get_session), config: Config = Depends(get_config)):
    async with s.begin():
        return await IdentityRegistry(s, config).describe(email)


@router.put("/user/{email}", response_model=EnrollmentOut)
async def enroll_user(
    email: str,
    response: Response,
    s: AsyncSession = Depends(get_session),
    config: Config = Depends(get_config),
):
    async with s.begin():
        enrollment = await IdentityRegistry(s, config).enroll_or_rotate(email)
    response.status_code = status.HTTP_201_CREATED if enrollment.created else status.HTTP_200_OK
    return EnrollmentOut(email=email, totpurl=data_url("image/png", enrollment.qr_png))


@router.delete("/user/{email}", response_model=RemovalOut)
async def delete_user(email: str, s: AsyncSession = Depends(get_session), config: Config = Depends(get_config)):
    async with s.begin():
        registry = IdentityRegistry(s, config)
        if not await registry.exists(email):
            raise NotFound(f"unknown user {email}")
        fps = await registry.remove(email)
    return RemovalOut(revoked_certs=fps)
