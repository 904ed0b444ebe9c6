from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection

from amm_indexer.app.domain.entities import Entity
from amm_indexer.app.domain.ports.out import E


class SqlAlchemyEntityStore:
    """
    EntityStore adapter persisting the entity graph in domain.amm_entities.

    Layout:
    - one row per entity: (entity_type, entity_id) primary key, JSONB payload,
    - `seq` (bigserial) is assigned on first insert and kept by upserts, so
      relationship scans ordered by seq return entities in creation order.

    The store works on a connection owned by the caller; commit / rollback
    boundaries are the caller's. `savepoint` nests a SAVEPOINT per event so a
    failed statement does not abort the surrounding transaction.
    """

    def __init__(self, conn: AsyncConnection) -> None:
        self._conn = conn

    async def get(self, model: type[E], entity_id: str) -> E | None:
        result = await self._conn.execute(
            text(
                """
                SELECT payload
                FROM domain.amm_entities
                WHERE entity_type = :entity_type
                  AND entity_id = :entity_id
                """
            ),
            {"entity_type": model.entity_type(), "entity_id": entity_id},
        )
        row = result.one_or_none()
        if row is None:
            return None
        return model.model_validate(row.payload)

    async def set(self, entity: Entity) -> None:
        await self._conn.execute(
            text(
                """
                INSERT INTO domain.amm_entities (entity_type, entity_id, payload)
                VALUES (:entity_type, :entity_id, CAST(:payload AS JSONB))
                ON CONFLICT (entity_type, entity_id)
                DO UPDATE SET payload = EXCLUDED.payload
                """
            ),
            {
                "entity_type": entity.entity_type(),
                "entity_id": entity.id,
                "payload": entity.model_dump_json(),
            },
        )

    async def delete(self, model: type[Entity], entity_id: str) -> None:
        await self._conn.execute(
            text(
                """
                DELETE FROM domain.amm_entities
                WHERE entity_type = :entity_type
                  AND entity_id = :entity_id
                """
            ),
            {"entity_type": model.entity_type(), "entity_id": entity_id},
        )

    async def get_where(self, model: type[E], field: str, value: str) -> list[E]:
        entity_type = model.entity_type()
        if field not in model.indexed_fields:
            raise ValueError(f"{entity_type}.{field} is not an indexed field")

        result = await self._conn.execute(
            text(
                """
                SELECT payload
                FROM domain.amm_entities
                WHERE entity_type = :entity_type
                  AND payload ->> :field = :value
                ORDER BY seq
                """
            ),
            {"entity_type": entity_type, "field": field, "value": value},
        )
        return [model.model_validate(row.payload) for row in result]

    async def ids(self, model: type[Entity]) -> list[str]:
        result = await self._conn.execute(
            text(
                """
                SELECT entity_id
                FROM domain.amm_entities
                WHERE entity_type = :entity_type
                ORDER BY seq
                """
            ),
            {"entity_type": model.entity_type()},
        )
        return list(result.scalars())

    @asynccontextmanager
    async def savepoint(self) -> AsyncIterator[None]:
        nested = await self._conn.begin_nested()
        try:
            yield
        except SQLAlchemyError:
            # Postgres refuses further statements until the savepoint is rolled back
            await nested.rollback()
            raise
        except BaseException:
            await nested.commit()
            raise
        else:
            await nested.commit()
