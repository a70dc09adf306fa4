from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from vpnkeeper.api.deps import get_session
from vpnkeeper.schemas import SettingsSnapshot
from vpnkeeper.services.settings import SettingsStore

router = APIRouter()


@router.get("/settings", response_model=SettingsSnapshot)
async def get_settings(s: AsyncSession = Depends(get_session)):
    async with s.begin():
        return await SettingsStore(s).load()


@router.put("/settings", response_model=SettingsSnapshot)
async def put_settings(body: SettingsSnapshot, s: AsyncSession = Depends(get_session)):
    async with s.begin():
        store = SettingsStore(s)
        await store.store(body)
        return await store.load()
