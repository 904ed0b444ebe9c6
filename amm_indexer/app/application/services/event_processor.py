from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from amm_indexer.app.application.handlers.context import HandlerContext
from amm_indexer.app.application.handlers.factory import handle_pair_created
from amm_indexer.app.application.handlers.liquidity import handle_burn, handle_mint
from amm_indexer.app.application.handlers.swap import handle_swap
from amm_indexer.app.application.handlers.sync import handle_sync
from amm_indexer.app.application.handlers.transfer import handle_transfer
from amm_indexer.app.domain.errors import HandlerError, MissingEntityError
from amm_indexer.app.domain.events import (
    BurnEvent,
    MintEvent,
    PairCreatedEvent,
    PairEvent,
    SwapEvent,
    SyncEvent,
    TransferEvent,
)
from amm_indexer.app.domain.numeric import decimal_context

logger = logging.getLogger(__name__)

Handler = Callable[[Any, HandlerContext], Awaitable[None]]

_HANDLERS: dict[type, Handler] = {
    PairCreatedEvent: handle_pair_created,
    TransferEvent: handle_transfer,
    MintEvent: handle_mint,
    BurnEvent: handle_burn,
    SwapEvent: handle_swap,
    SyncEvent: handle_sync,
}


@dataclass
class ProcessorStats:
    processed: int = 0
    skipped: int = 0
    missing: int = 0
    failed: int = 0


class EventProcessor:
    """
    Routes decoded events to their handlers, one at a time.

    PairCreated is accepted only from the factory; every other event only
    from a pair registered by an earlier PairCreated. A failing event is
    logged and skipped: writes it made before failing stay in the store,
    except on a database error, where the store rolls the event back.
    """

    def __init__(self, ctx: HandlerContext) -> None:
        self._ctx = ctx
        self.stats = ProcessorStats()

    def _is_tracked(self, event: PairEvent) -> bool:
        src = event.meta.src_address
        if isinstance(event, PairCreatedEvent):
            return self._ctx.registry.is_factory(src)
        return self._ctx.registry.is_pair(src)

    async def process(self, event: PairEvent) -> None:
        handler = _HANDLERS.get(type(event))
        if handler is None or not self._is_tracked(event):
            self.stats.skipped += 1
            return

        meta = event.meta
        try:
            with decimal_context():
                async with self._ctx.store.savepoint():
                    await handler(event, self._ctx)
        except MissingEntityError as exc:
            self.stats.missing += 1
            logger.warning(
                "Skipping %s: %s",
                type(event).__name__,
                exc,
                extra={
                    "block_number": meta.block_number,
                    "transaction_hash": meta.transaction_hash,
                    "log_index": meta.log_index,
                },
            )
        except HandlerError as exc:
            self.stats.failed += 1
            logger.error(
                "Failed to apply %s: %s",
                type(event).__name__,
                exc,
                extra={
                    "block_number": meta.block_number,
                    "transaction_hash": meta.transaction_hash,
                    "log_index": meta.log_index,
                },
            )
        except Exception:
            self.stats.failed += 1
            logger.exception(
                "Unexpected error in %s handler at block %s tx %s log %s",
                type(event).__name__,
                meta.block_number,
                meta.transaction_hash,
                meta.log_index,
            )
        else:
            self.stats.processed += 1
