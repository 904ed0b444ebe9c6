from __future__ import annotations

from collections import defaultdict
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from amm_indexer.app.domain.entities import Entity
from amm_indexer.app.domain.ports.out import E


class InMemoryEntityStore:
    """
    EntityStore adapter keeping the whole graph in process memory.

    Besides the primary tables (entity type -> id -> entity) it maintains an
    insertion-ordered secondary index per indexed field, so relationship
    lookups such as "all mints of transaction X" never scan a table.

    Used by tests and by dry runs; state is lost when the process exits.
    """

    def __init__(self) -> None:
        self._tables: dict[str, dict[str, Entity]] = defaultdict(dict)
        self._indexes: dict[tuple[str, str, str], list[str]] = defaultdict(list)

    async def get(self, model: type[E], entity_id: str) -> E | None:
        entity = self._tables[model.entity_type()].get(entity_id)
        return entity  # type: ignore[return-value]

    async def set(self, entity: Entity) -> None:
        entity_type = entity.entity_type()
        table = self._tables[entity_type]
        previous = table.get(entity.id)

        for field in entity.indexed_fields:
            value = getattr(entity, field)
            if previous is not None:
                old_value = getattr(previous, field)
                if old_value == value:
                    continue
                if old_value is not None:
                    self._indexes[(entity_type, field, old_value)].remove(entity.id)
            if value is not None:
                self._indexes[(entity_type, field, value)].append(entity.id)

        table[entity.id] = entity

    async def delete(self, model: type[Entity], entity_id: str) -> None:
        entity_type = model.entity_type()
        entity = self._tables[entity_type].pop(entity_id, None)
        if entity is None:
            return

        for field in entity.indexed_fields:
            value = getattr(entity, field)
            if value is not None:
                self._indexes[(entity_type, field, value)].remove(entity_id)

    async def get_where(self, model: type[E], field: str, value: str) -> list[E]:
        entity_type = model.entity_type()
        if field not in model.indexed_fields:
            raise ValueError(f"{entity_type}.{field} is not an indexed field")

        table = self._tables[entity_type]
        ids = self._indexes.get((entity_type, field, value), [])
        return [table[i] for i in ids]  # type: ignore[misc]

    async def ids(self, model: type[Entity]) -> list[str]:
        return list(self._tables[model.entity_type()])

    @asynccontextmanager
    async def savepoint(self) -> AsyncIterator[None]:
        # writes made before a failure are kept
        yield

    def count(self, model: type[Entity]) -> int:
        return len(self._tables[model.entity_type()])
