from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from vpnkeeper.api.deps import get_session
from vpnkeeper.core.errors import InvalidArgument
from vpnkeeper.schemas import WhitelistOut
from vpnkeeper.services.whitelist import WhitelistGate

router = APIRouter()


@router.get("/whitelist", response_model=WhitelistOut)
async def list_whitelist(s: AsyncSession = Depends(get_session)):
    async with s.begin():
        return WhitelistOut(users=await WhitelistGate(s).list())


@router.api_route("/whitelist", methods=["PUT", "DELETE"])
@router.api_route("/whitelist/", methods=["PUT", "DELETE"], include_in_schema=False)
async def missing_email():
    raise InvalidArgument("missing email in path")


@router.get("/whitelist/{email}")
async def get_whitelisted(email: str):
    # listar no admite email
    raise InvalidArgument("GET /whitelist takes no email")


@router.put("/whitelist/{email}", response_model=WhitelistOut)
async def add_whitelisted(email: str, s: AsyncSession = Depends(get_session)):
    async with s.begin():
        gate = WhitelistGate(s)
        await gate.add(email)
        return WhitelistOut(users=await gate.list())


@router.delete("/whitelist/{email}", response_model=WhitelistOut)
async def remove_whitelisted(email: str, s: AsyncSession = Depends(get_session)):
    async with s.begin():
        gate = WhitelistGate(s)
        await gate.remove(email)
        return WhitelistOut(users=await gate.list())
