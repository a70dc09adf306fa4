from typing import AsyncIterator

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from vpnkeeper.core.config import Config


def get_config(request: Request) -> Config:
    return request.app.state.config


async def get_session(request: Request) -> AsyncIterator[AsyncSession]:
    # una sesión por petición; nada se cachea entre peticiones
    async with request.app.state.db.session() as s:
        yield s
