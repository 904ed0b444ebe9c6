from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Callable, Dict

from sqlalchemy.ext.asyncio import AsyncEngine
from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.providers.rpc.utils import ExceptionRetryConfiguration

from amm_indexer.app.config import get_settings, load_chain_config
from amm_indexer.app.domain.chain_config import ChainConfig
from amm_indexer.app.domain.ports.out import AmmSubgraphIndexer, EntityStore
from amm_indexer.app.infrastructure.adapters.domain.amm_subgraph_indexer import (
    EventReplayAmmSubgraphIndexer,
    StoreScope,
)
from amm_indexer.app.infrastructure.adapters.sources.evm_event_logs_source import (
    SqlAlchemyEvmEventLogsSource,
)
from amm_indexer.app.infrastructure.adapters.store.in_memory_entity_store import (
    InMemoryEntityStore,
)
from amm_indexer.app.infrastructure.adapters.store.sqlalchemy_entity_store import (
    SqlAlchemyEntityStore,
)
from amm_indexer.app.infrastructure.decoders.uniswap_v2.event_decoder import (
    UniswapV2EventDecoder,
)
from amm_indexer.app.infrastructure.fetchers.erc20_tokens_fetcher import (
    Web3Erc20TokenMetadataFetcher,
)

AmmSubgraphIndexerFactory = Callable[[AsyncEngine, int], AmmSubgraphIndexer]

_AMM_SUBGRAPH_INDEXER_REGISTRY: Dict[str, AmmSubgraphIndexerFactory] = {}

# -----------------------------------------------------------------------------
# Defaults for Uniswap v2 event decoding
# -----------------------------------------------------------------------------
_DEFAULT_BATCH_SIZE = 10_000

_ABI_DIR = Path(__file__).resolve().parents[3] / "registry" / "abi"
_DEFAULT_ABI_PATHS = (
    _ABI_DIR / "UniswapV2Factory.json",
    _ABI_DIR / "UniswapV2Pair.json",
)
_EVENT_NAMES = ("PairCreated", "Transfer", "Mint", "Burn", "Swap", "Sync")


def _make_fetcher(config: ChainConfig) -> Web3Erc20TokenMetadataFetcher:
    settings = get_settings()
    w3 = AsyncWeb3(
        AsyncHTTPProvider(
            settings.rpc_url(config.chain_id),
            request_kwargs={"timeout": 30},
            exception_retry_configuration=ExceptionRetryConfiguration(
                retries=5,
                backoff_factor=2,
            ),
        )
    )
    return Web3Erc20TokenMetadataFetcher(
        w3=w3,
        config=config,
        default_decimals=settings.token_default_decimals,
    )


def _sqlalchemy_store_scope(engine: AsyncEngine) -> StoreScope:
    @asynccontextmanager
    async def scope() -> AsyncIterator[EntityStore]:
        async with engine.begin() as conn:
            yield SqlAlchemyEntityStore(conn)

    return scope


def _memory_store_scope() -> StoreScope:
    store = InMemoryEntityStore()

    @asynccontextmanager
    async def scope() -> AsyncIterator[EntityStore]:
        yield store

    return scope


def _make_indexer(
    engine: AsyncEngine,
    *,
    chain_id: int,
    store_scope: StoreScope,
    batch_size: int,
) -> AmmSubgraphIndexer:
    """
    Wire dependencies:
    - chain config from the chain registry (fails fast on unknown chains),
    - ABI-based Uniswap v2 decoder and staging.evm_event_logs source,
    - AsyncWeb3 ERC-20 fetcher (per-chain RPC URL),
    - the entity store scope of the selected backend.
    """
    config = load_chain_config(chain_id)
    fetcher = _make_fetcher(config)

    decoder = UniswapV2EventDecoder(abi_paths=_DEFAULT_ABI_PATHS, event_names=_EVENT_NAMES)
    source = SqlAlchemyEvmEventLogsSource(engine, decoder=decoder, batch_size=batch_size)

    return EventReplayAmmSubgraphIndexer(
        source=source,
        store_scope=store_scope,
        config=config,
        fetcher=fetcher,
        preload=get_settings().indexer_preload,
    )


# Register backends
_AMM_SUBGRAPH_INDEXER_REGISTRY["sqlalchemy"] = lambda engine, chain_id: _make_indexer(
    engine,
    chain_id=chain_id,
    store_scope=_sqlalchemy_store_scope(engine),
    batch_size=_DEFAULT_BATCH_SIZE,
)
# dry run: entities are kept in process memory and discarded
_AMM_SUBGRAPH_INDEXER_REGISTRY["memory"] = lambda engine, chain_id: _make_indexer(
    engine,
    chain_id=chain_id,
    store_scope=_memory_store_scope(),
    batch_size=_DEFAULT_BATCH_SIZE,
)


def amm_subgraph_indexer_factory(
    *,
    backend: str,
    engine: AsyncEngine,
    chain_id: int,
) -> AmmSubgraphIndexer:
    """Create an AMM subgraph indexer for the given entity-store backend."""
    try:
        factory = _AMM_SUBGRAPH_INDEXER_REGISTRY[backend]
    except KeyError:
        raise ValueError(f"Unsupported AMM subgraph indexer backend: {backend!r}")

    return factory(engine, chain_id)
