import unittest
from decimal import Decimal

from amm_indexer.app.application.services.pricing import (
    BUNDLE_ID,
    find_eth_per_token,
    get_eth_price_in_usd,
    get_tracked_liquidity_usd,
    get_tracked_volume_usd,
)
from amm_indexer.app.domain.entities import Bundle, Pair, PairTokenLookup, Token
from amm_indexer.app.infrastructure.adapters.store.in_memory_entity_store import (
    InMemoryEntityStore,
)

from tests.amm_fixtures import (
    PAIR_A_B,
    PAIR_A_WETH,
    PAIR_USDC_WETH,
    TOKEN_A,
    TOKEN_B,
    USDC,
    WETH,
    addr,
    make_config,
)


def _token(token_id: str, derived_eth: str = '0') -> Token:
    return Token(id=token_id, symbol='T', name='T', decimals=18, derived_eth=Decimal(derived_eth))


def _pair(pair_id: str, token0: str, token1: str, reserve0: str, reserve1: str, lps: int = 10) -> Pair:
    r0 = Decimal(reserve0)
    r1 = Decimal(reserve1)
    return Pair(
        id=pair_id,
        token0_id=token0,
        token1_id=token1,
        reserve0=r0,
        reserve1=r1,
        token0_price=r1 / r0 if r0 else Decimal(0),
        token1_price=r0 / r1 if r1 else Decimal(0),
        liquidity_provider_count=lps,
        created_at_timestamp=0,
        created_at_block_number=0,
    )


class EthPriceTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.store = InMemoryEntityStore()
        self.second_stable_pair = addr(0x5EC)
        self.config = make_config(
            stable_token_pairs=[PAIR_USDC_WETH, self.second_stable_pair],
            stablecoins=[USDC, TOKEN_B],
        )

    async def test_zero_when_no_stable_pair_exists(self) -> None:
        self.assertEqual(await get_eth_price_in_usd(self.store, self.config), Decimal(0))

    async def test_single_pair_with_reference_token1(self) -> None:
        await self.store.set(_pair(PAIR_USDC_WETH, USDC, WETH, '2000000', '1000'))
        self.assertEqual(await get_eth_price_in_usd(self.store, self.config), Decimal(2000))

    async def test_weights_prices_by_reference_reserve(self) -> None:
        await self.store.set(_pair(PAIR_USDC_WETH, USDC, WETH, '200000', '100'))
        # reference token on the token0 side
        await self.store.set(_pair(self.second_stable_pair, WETH, TOKEN_B, '300', '630000'))

        price = await get_eth_price_in_usd(self.store, self.config)
        self.assertEqual(price, Decimal(2075))

    async def test_skips_pairs_without_reference_liquidity(self) -> None:
        await self.store.set(_pair(PAIR_USDC_WETH, USDC, WETH, '2000000', '1000'))
        await self.store.set(_pair(self.second_stable_pair, WETH, TOKEN_B, '0', '0'))

        self.assertEqual(await get_eth_price_in_usd(self.store, self.config), Decimal(2000))

    async def test_skips_pairs_not_quoted_in_a_stablecoin(self) -> None:
        config = self.config.model_copy(update={'stablecoins': frozenset({USDC})})
        await self.store.set(_pair(PAIR_USDC_WETH, USDC, WETH, '200000', '100'))
        await self.store.set(_pair(self.second_stable_pair, WETH, TOKEN_B, '300', '630000'))

        self.assertEqual(await get_eth_price_in_usd(self.store, config), Decimal(2000))

    async def test_any_counter_token_counts_without_stablecoin_list(self) -> None:
        config = self.config.model_copy(update={'stablecoins': frozenset()})
        await self.store.set(_pair(self.second_stable_pair, WETH, TOKEN_B, '300', '630000'))

        self.assertEqual(await get_eth_price_in_usd(self.store, config), Decimal(2100))


class FindEthPerTokenTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.store = InMemoryEntityStore()
        self.config = make_config(whitelist=[WETH, USDC])
        await self.store.set(_token(WETH, '1'))
        await self.store.set(_token(USDC, '0.0005'))
        await self.store.set(_token(TOKEN_B, '10'))

    async def _link(self, pair: Pair) -> None:
        await self.store.set(pair)
        for token_id in (pair.token0_id, pair.token1_id):
            await self.store.set(
                PairTokenLookup(id=f'{token_id}-{pair.id}', token_id=token_id, pair_id=pair.id)
            )

    async def test_reference_token_is_worth_one(self) -> None:
        self.assertEqual(await find_eth_per_token(self.store, _token(WETH), self.config), Decimal(1))

    async def test_prices_against_reference_token(self) -> None:
        await self._link(_pair(PAIR_A_WETH, TOKEN_A, WETH, '1000', '2000'))
        price = await find_eth_per_token(self.store, _token(TOKEN_A), self.config)
        self.assertEqual(price, Decimal(2))

    async def test_uses_deepest_whitelisted_pair(self) -> None:
        # 50 WETH of depth at 2 WETH per A
        await self._link(_pair(PAIR_A_WETH, TOKEN_A, WETH, '25', '50'))
        # 2,000,000 USDC (1000 WETH of depth) at 3000 USDC per A -> 1.5 WETH
        await self._link(_pair(addr(0xA05D), TOKEN_A, USDC, '666.666', '1999998'))

        price = await find_eth_per_token(self.store, _token(TOKEN_A), self.config)
        self.assertEqual(price, Decimal('1.5'))

    async def test_ignores_non_whitelisted_counter_token(self) -> None:
        await self._link(_pair(PAIR_A_B, TOKEN_A, TOKEN_B, '1000', '1000'))
        price = await find_eth_per_token(self.store, _token(TOKEN_A), self.config)
        self.assertEqual(price, Decimal(0))

    async def test_ignores_pairs_below_liquidity_threshold(self) -> None:
        await self._link(_pair(PAIR_A_WETH, TOKEN_A, WETH, '1', '0.5'))
        price = await find_eth_per_token(self.store, _token(TOKEN_A), self.config)
        self.assertEqual(price, Decimal(0))


class TrackedAmountTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.store = InMemoryEntityStore()
        self.config = make_config(whitelist=[WETH, USDC])
        await self.store.set(Bundle(id=BUNDLE_ID, eth_price=Decimal(2000)))
        self.weth = _token(WETH, '1')
        self.usdc = _token(USDC, '0.0005')
        self.token_a = _token(TOKEN_A, '2')
        self.token_b = _token(TOKEN_B, '3')

    async def test_volume_averages_two_whitelisted_sides(self) -> None:
        pair = _pair(PAIR_USDC_WETH, USDC, WETH, '2000000', '1000')
        volume = await get_tracked_volume_usd(
            self.store, Decimal(2000), self.usdc, Decimal(1), self.weth, pair, self.config
        )
        self.assertEqual(volume, Decimal(2000))

    async def test_volume_uses_single_whitelisted_side_undivided(self) -> None:
        pair = _pair(PAIR_A_WETH, TOKEN_A, WETH, '1000', '2000')
        volume = await get_tracked_volume_usd(
            self.store, Decimal(5), self.token_a, Decimal(10), self.weth, pair, self.config
        )
        self.assertEqual(volume, Decimal(20000))

    async def test_volume_is_zero_without_whitelisted_token(self) -> None:
        pair = _pair(PAIR_A_B, TOKEN_A, TOKEN_B, '1000000', '1000000')
        volume = await get_tracked_volume_usd(
            self.store, Decimal(100), self.token_a, Decimal(100), self.token_b, pair, self.config
        )
        self.assertEqual(volume, Decimal(0))

    async def test_volume_requires_liquidity_for_new_pairs(self) -> None:
        # one LP and 1 WETH of reserves: 4000 USD counted twice is under the threshold
        pair = _pair(PAIR_A_WETH, TOKEN_A, WETH, '0.5', '0.999', lps=1)
        volume = await get_tracked_volume_usd(
            self.store, Decimal(1), self.token_a, Decimal(1), self.weth, pair, self.config
        )
        self.assertEqual(volume, Decimal(0))

    async def test_liquidity_sums_two_whitelisted_sides(self) -> None:
        liquidity = await get_tracked_liquidity_usd(
            self.store, Decimal(2000000), self.usdc, Decimal(1000), self.weth, self.config
        )
        self.assertEqual(liquidity, Decimal(4000000))

    async def test_liquidity_doubles_single_whitelisted_side(self) -> None:
        liquidity = await get_tracked_liquidity_usd(
            self.store, Decimal(1000), self.token_a, Decimal(2000), self.weth, self.config
        )
        self.assertEqual(liquidity, Decimal(8000000))

    async def test_liquidity_is_zero_without_whitelisted_token(self) -> None:
        liquidity = await get_tracked_liquidity_usd(
            self.store, Decimal(1000), self.token_a, Decimal(1000), self.token_b, self.config
        )
        self.assertEqual(liquidity, Decimal(0))
