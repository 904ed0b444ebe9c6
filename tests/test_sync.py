import unittest
from decimal import Decimal

from amm_indexer.app.application.services.pricing import BUNDLE_ID
from amm_indexer.app.domain.entities import Bundle, Pair, Token, UniswapFactory

from tests.amm_fixtures import (
    E6,
    E18,
    FACTORY,
    PAIR_A_WETH,
    PAIR_USDC_WETH,
    TOKEN_A,
    USDC,
    WETH,
    Harness,
)


class SyncTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.h = Harness()

    async def test_prices_token_against_reference_token(self) -> None:
        await self.h.pair_created(TOKEN_A, WETH, PAIR_A_WETH)
        await self.h.sync(PAIR_A_WETH, 1000 * E18, 2000 * E18)

        token_a = await self.h.store.get(Token, TOKEN_A)
        weth = await self.h.store.get(Token, WETH)
        pair = await self.h.store.get(Pair, PAIR_A_WETH)

        self.assertEqual(token_a.derived_eth, Decimal(2))
        self.assertEqual(weth.derived_eth, Decimal(1))
        self.assertEqual(pair.reserve0, Decimal(1000))
        self.assertEqual(pair.reserve1, Decimal(2000))
        self.assertEqual(pair.token0_price, Decimal(2))
        self.assertEqual(pair.token1_price, Decimal('0.5'))
        self.assertEqual(pair.reserve_eth, Decimal(4000))
        self.assertEqual(token_a.total_liquidity, Decimal(1000))
        self.assertEqual(weth.total_liquidity, Decimal(2000))

    async def test_no_usd_values_before_reference_token_is_priced(self) -> None:
        await self.h.pair_created(TOKEN_A, WETH, PAIR_A_WETH)
        await self.h.sync(PAIR_A_WETH, 1000 * E18, 2000 * E18)

        bundle = await self.h.store.get(Bundle, BUNDLE_ID)
        pair = await self.h.store.get(Pair, PAIR_A_WETH)
        factory = await self.h.store.get(UniswapFactory, FACTORY)

        self.assertEqual(bundle.eth_price, Decimal(0))
        self.assertEqual(pair.reserve_usd, Decimal(0))
        self.assertEqual(pair.tracked_reserve_eth, Decimal(0))
        self.assertEqual(factory.total_liquidity_eth, Decimal(0))

    async def test_stable_pair_sets_reference_price(self) -> None:
        await self.h.priced_stable_pair()

        bundle = await self.h.store.get(Bundle, BUNDLE_ID)
        usdc = await self.h.store.get(Token, USDC)
        pair = await self.h.store.get(Pair, PAIR_USDC_WETH)
        factory = await self.h.store.get(UniswapFactory, FACTORY)

        self.assertEqual(bundle.eth_price, Decimal(2000))
        self.assertEqual(usdc.derived_eth, Decimal('0.0005'))
        self.assertEqual(usdc.price_usd, Decimal(1))
        self.assertEqual(pair.reserve_eth, Decimal(2000))
        self.assertEqual(pair.reserve_usd, Decimal(4_000_000))
        self.assertEqual(pair.tracked_reserve_eth, Decimal(2000))
        self.assertEqual(factory.total_liquidity_eth, Decimal(2000))
        self.assertEqual(factory.total_liquidity_usd, Decimal(4_000_000))

    async def test_factory_liquidity_is_conserved_across_syncs(self) -> None:
        await self.h.priced_stable_pair()
        before = await self.h.store.get(UniswapFactory, FACTORY)
        old_pair = await self.h.store.get(Pair, PAIR_USDC_WETH)

        await self.h.sync(PAIR_USDC_WETH, 2_200_000 * E6, 1_100 * E18)

        after = await self.h.store.get(UniswapFactory, FACTORY)
        new_pair = await self.h.store.get(Pair, PAIR_USDC_WETH)

        self.assertEqual(
            after.total_liquidity_eth,
            before.total_liquidity_eth - old_pair.tracked_reserve_eth + new_pair.tracked_reserve_eth,
        )
        self.assertEqual(new_pair.tracked_reserve_eth, Decimal(2200))

    async def test_token_liquidity_replaces_previous_reserves(self) -> None:
        await self.h.priced_stable_pair()
        await self.h.sync(PAIR_USDC_WETH, 2_200_000 * E6, 1_100 * E18)

        usdc = await self.h.store.get(Token, USDC)
        weth = await self.h.store.get(Token, WETH)
        self.assertEqual(usdc.total_liquidity, Decimal(2_200_000))
        self.assertEqual(weth.total_liquidity, Decimal(1_100))

    async def test_empty_reserves_give_zero_prices(self) -> None:
        await self.h.pair_created(TOKEN_A, WETH, PAIR_A_WETH)
        await self.h.sync(PAIR_A_WETH, 0, 0)

        pair = await self.h.store.get(Pair, PAIR_A_WETH)
        self.assertEqual(pair.token0_price, Decimal(0))
        self.assertEqual(pair.token1_price, Decimal(0))
        self.assertEqual(self.h.processor.stats.failed, 0)

    async def test_other_pairs_see_freshly_synced_reference_price(self) -> None:
        await self.h.priced_stable_pair()
        await self.h.pair_created(TOKEN_A, WETH, PAIR_A_WETH)
        await self.h.sync(PAIR_A_WETH, 1000 * E18, 2000 * E18)

        token_a = await self.h.store.get(Token, TOKEN_A)
        pair = await self.h.store.get(Pair, PAIR_A_WETH)

        self.assertEqual(token_a.price_usd, Decimal(4000))
        self.assertEqual(pair.reserve_usd, Decimal(8_000_000))
        # only the WETH side is whitelisted: counted twice
        self.assertEqual(pair.tracked_reserve_eth, Decimal(4000))
