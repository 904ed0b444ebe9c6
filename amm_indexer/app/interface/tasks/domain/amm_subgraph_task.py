from __future__ import annotations

from amm_indexer.app.application.services.block_bounds import (
    resolve_block_bounds_from_table,
)
from amm_indexer.app.application.services.index_amm_subgraph_for_block_range import (
    BlockRange,
    index_amm_subgraph_for_block_range,
)
from amm_indexer.app.config import load_chain_config
from amm_indexer.app.domain.ports.out import AmmSubgraphIndexer
from amm_indexer.app.infrastructure.db.engine import create_app_async_engine
from amm_indexer.app.infrastructure.factories.domain.amm_subgraph_indexer_factory import (
    amm_subgraph_indexer_factory,
)


async def index_amm_subgraph_task(
    *,
    chain_id: int,
    from_block: int | str,
    to_block: int | str,
    backend: str = "sqlalchemy",
) -> None:
    """
    Task: replay Uniswap v2 factory / pair events into domain.amm_entities
    for a given chain and block range.

    - selects candidate logs from staging.evm_event_logs (topic0 filter in the source),
    - decodes them with the Uniswap v2 ABI decoder,
    - applies them in chain order to the entity graph (backend "sqlalchemy"
      persists, "memory" is a dry run).
    """
    # fail fast on unknown chains, before touching the database
    config = load_chain_config(chain_id)

    engine = create_app_async_engine()
    try:
        resolved_from_block, resolved_to_block = await resolve_block_bounds_from_table(
            engine=engine,
            chain_id=chain_id,
            from_block=from_block,
            to_block=to_block,
            source_table="staging.evm_event_logs",
            start_block=config.start_block,
        )

        indexer: AmmSubgraphIndexer = amm_subgraph_indexer_factory(
            backend=backend,
            engine=engine,
            chain_id=chain_id,
        )

        await index_amm_subgraph_for_block_range(
            indexer=indexer,
            chain_id=chain_id,
            block_range=BlockRange(
                from_block=resolved_from_block,
                to_block=resolved_to_block,
            ),
        )
    finally:
        await engine.dispose()
