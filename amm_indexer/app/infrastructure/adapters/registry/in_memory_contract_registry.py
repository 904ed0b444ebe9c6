from __future__ import annotations

import logging
from collections.abc import Iterable

from amm_indexer.app.domain.numeric import normalize_address

logger = logging.getLogger(__name__)


class InMemoryContractRegistry:
    """
    ContractRegistry adapter: the factory plus every pair seen so far.

    Seeded with pairs already persisted by earlier runs; grows as
    PairCreated events are applied.
    """

    def __init__(self, *, factory_address: str, pairs: Iterable[str] = ()) -> None:
        self._factory = normalize_address(factory_address)
        self._pairs: set[str] = {normalize_address(p) for p in pairs}

    def add_pair(self, pair_address: str) -> None:
        address = normalize_address(pair_address)
        if address not in self._pairs:
            self._pairs.add(address)
            logger.debug("Tracking pair %s", address)

    def is_factory(self, address: str) -> bool:
        return normalize_address(address) == self._factory

    def is_pair(self, address: str) -> bool:
        return normalize_address(address) in self._pairs

    def __len__(self) -> int:
        return len(self._pairs)
