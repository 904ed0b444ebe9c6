from __future__ import annotations

from typing import Literal

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine


BlockSelector = int | str
_EARLIEST: Literal["earliest"] = "earliest"
_LATEST: Literal["latest"] = "latest"


def _parse_selector(value: BlockSelector, keyword: str) -> int | None:
    """Concrete block number, or None when the bound must come from the table."""
    if isinstance(value, int):
        return value

    raw = value.strip().lower()
    if raw in ("", keyword):
        return None
    if raw.isdigit():
        return int(raw)
    raise ValueError(f"Unsupported block selector: {value!r}")


async def resolve_block_bounds_from_table(
    *,
    engine: AsyncEngine,
    chain_id: int,
    from_block: BlockSelector,
    to_block: BlockSelector,
    source_table: str,
    start_block: int | None = None,
) -> tuple[int, int]:
    """
    Resolve from_block / to_block into concrete block numbers.

    - ints and numeric strings are used as-is,
    - "earliest" / "" -> start_block when configured, else MIN(block_number),
    - "latest" / ""   -> MAX(block_number) of source_table for the chain.
    """
    fb = _parse_selector(from_block, _EARLIEST)
    tb = _parse_selector(to_block, _LATEST)

    if fb is None and start_block is not None:
        fb = start_block
    if fb is not None and tb is not None:
        return fb, tb

    sql = text(
        f"""
        SELECT
            MIN(block_number) AS min_block,
            MAX(block_number) AS max_block
        FROM {source_table}
        WHERE chain_id = :chain_id
        """
    )

    async with engine.connect() as conn:
        result = await conn.execute(sql, {"chain_id": chain_id})
        row = result.one_or_none()

    if row is None or row.min_block is None or row.max_block is None:
        raise RuntimeError(f"No rows found in {source_table!r} for chain_id={chain_id}")

    return (
        fb if fb is not None else row.min_block,
        tb if tb is not None else row.max_block,
    )
