# vpnkeeper/db/upsert.py
from typing import Any, Iterable

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession


async def upsert(
    session: AsyncSession,
    model,
    keys: Iterable[str],
    values: dict[str, Any],
    update: Iterable[str],
) -> None:
    """
    INSERT de ``values``; si ya existe una fila con las mismas ``keys`` sólo se
    sobrescriben las columnas de ``update`` (el resto, p.ej. ``created``, se conserva).
    """
    dialect = session.get_bind().dialect.name
    if dialect == "sqlite":
        insert = sqlite.insert
    elif dialect == "postgresql":
        insert = postgresql.insert
    else:
        raise ValueError(f"upsert not supported for dialect {dialect!r}")

    stmt = insert(model).values(**values)
    stmt = stmt.on_conflict_do_update(
        index_elements=list(keys),
        set_={name: stmt.excluded[name] for name in update},
    )
    await session.execute(stmt)
