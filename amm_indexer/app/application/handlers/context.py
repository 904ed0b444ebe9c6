from __future__ import annotations

from dataclasses import dataclass

from amm_indexer.app.domain.chain_config import ChainConfig
from amm_indexer.app.domain.entities import Pair, Token, Transaction, UniswapFactory
from amm_indexer.app.domain.errors import MissingEntityError
from amm_indexer.app.domain.events import EventMeta
from amm_indexer.app.domain.ports.out import (
    ContractRegistry,
    EntityStore,
    Erc20TokenMetadataFetcher,
)


@dataclass(frozen=True)
class HandlerContext:
    """
    Everything a handler may touch besides the event itself.

    `preload` skips the day/hour rollups of Mint and Burn to speed up
    historical backfills.
    """

    store: EntityStore
    config: ChainConfig
    fetcher: Erc20TokenMetadataFetcher
    registry: ContractRegistry
    preload: bool = False

    async def require_factory(self) -> UniswapFactory:
        factory = await self.store.get(UniswapFactory, self.config.factory_address)
        if factory is None:
            raise MissingEntityError("UniswapFactory", self.config.factory_address)
        return factory

    async def require_pair(self, pair_id: str) -> Pair:
        pair = await self.store.get(Pair, pair_id)
        if pair is None:
            raise MissingEntityError("Pair", pair_id)
        return pair

    async def require_token(self, token_id: str) -> Token:
        token = await self.store.get(Token, token_id)
        if token is None:
            raise MissingEntityError("Token", token_id)
        return token

    async def require_transaction(self, transaction_id: str) -> Transaction:
        transaction = await self.store.get(Transaction, transaction_id)
        if transaction is None:
            raise MissingEntityError("Transaction", transaction_id)
        return transaction

    async def get_or_create_transaction(self, meta: EventMeta) -> Transaction:
        transaction = await self.store.get(Transaction, meta.transaction_hash)
        if transaction is None:
            transaction = Transaction(
                id=meta.transaction_hash,
                block_number=meta.block_number,
                timestamp=meta.block_timestamp,
            )
            await self.store.set(transaction)
        return transaction
