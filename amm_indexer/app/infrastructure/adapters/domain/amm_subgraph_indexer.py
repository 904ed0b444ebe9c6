from __future__ import annotations

import logging
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager

from amm_indexer.app.application.handlers.context import HandlerContext
from amm_indexer.app.application.services.event_processor import EventProcessor
from amm_indexer.app.domain.chain_config import ChainConfig
from amm_indexer.app.domain.entities import Pair
from amm_indexer.app.domain.errors import ConfigurationError
from amm_indexer.app.domain.ports.out import (
    EntityStore,
    Erc20TokenMetadataFetcher,
    PairEventSource,
)
from amm_indexer.app.infrastructure.adapters.registry.in_memory_contract_registry import (
    InMemoryContractRegistry,
)

logger = logging.getLogger(__name__)

StoreScope = Callable[[], AbstractAsyncContextManager[EntityStore]]

_PROGRESS_EVERY = 10_000


class EventReplayAmmSubgraphIndexer:
    """
    Indexer adapter: replays Uniswap v2 factory / pair events of a block range
    into the AMM entity graph.

    Strategy:
    - open one store scope for the whole range (one DB transaction for the
      SQL backend),
    - seed the contract registry with the factory and every persisted pair,
    - stream events from the source in chain order and hand each one to the
      EventProcessor, strictly one at a time.
    """

    def __init__(
        self,
        *,
        source: PairEventSource,
        store_scope: StoreScope,
        config: ChainConfig,
        fetcher: Erc20TokenMetadataFetcher,
        preload: bool = False,
    ) -> None:
        self._source = source
        self._store_scope = store_scope
        self._config = config
        self._fetcher = fetcher
        self._preload = preload

    async def index_events_for_block_range(
        self,
        *,
        chain_id: int,
        from_block: int,
        to_block: int,
    ) -> None:
        if chain_id != self._config.chain_id:
            raise ConfigurationError(
                f"Indexer configured for chain {self._config.chain_id}, got chain {chain_id}"
            )

        logger.info(
            "Starting AMM subgraph indexing",
            extra={
                "chain_id": chain_id,
                "from_block": from_block,
                "to_block": to_block,
                "preload": self._preload,
            },
        )

        async with self._store_scope() as store:
            registry = InMemoryContractRegistry(
                factory_address=self._config.factory_address,
                pairs=await store.ids(Pair),
            )
            ctx = HandlerContext(
                store=store,
                config=self._config,
                fetcher=self._fetcher,
                registry=registry,
                preload=self._preload,
            )
            processor = EventProcessor(ctx)

            seen = 0
            async for event in self._source.iter_events(
                chain_id=chain_id,
                from_block=from_block,
                to_block=to_block,
            ):
                await processor.process(event)
                seen += 1
                if seen % _PROGRESS_EVERY == 0:
                    logger.info(
                        "AMM subgraph indexing progress",
                        extra={
                            "chain_id": chain_id,
                            "block_number": event.meta.block_number,
                            "events": seen,
                            "pairs": len(registry),
                        },
                    )

        stats = processor.stats
        logger.info(
            "Finished AMM subgraph indexing",
            extra={
                "chain_id": chain_id,
                "from_block": from_block,
                "to_block": to_block,
                "events": seen,
                "processed": stats.processed,
                "skipped": stats.skipped,
                "missing": stats.missing,
                "failed": stats.failed,
                "pairs": len(registry),
            },
        )
