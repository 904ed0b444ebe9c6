import unittest
from decimal import Decimal

from amm_indexer.app.application.handlers.swap import derived_amount_eth
from amm_indexer.app.domain.entities import (
    Pair,
    PairDayData,
    PairHourData,
    Swap,
    Token,
    TokenDayData,
    TokenHourData,
    Transaction,
    UniswapDayData,
    UniswapFactory,
)

from tests.amm_fixtures import (
    ALICE,
    E6,
    E18,
    FACTORY,
    PAIR_A_B,
    PAIR_USDC_WETH,
    TOKEN_A,
    TOKEN_B,
    USDC,
    WETH,
    Harness,
)

PAIR = PAIR_USDC_WETH


class DerivedAmountTests(unittest.TestCase):
    def test_averages_two_priced_legs(self) -> None:
        self.assertEqual(derived_amount_eth(Decimal(2), Decimal(4)), Decimal(3))

    def test_keeps_single_priced_leg_whole(self) -> None:
        self.assertEqual(derived_amount_eth(Decimal(2), Decimal(0)), Decimal(2))
        self.assertEqual(derived_amount_eth(Decimal('0.0000001'), Decimal(5)), Decimal('5.0000001'))


class SwapTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.h = Harness()
        await self.h.priced_stable_pair()
        self.tx = self.h.new_tx()
        # 2000 USDC in, 1 WETH out
        await self.h.swap(PAIR, amount0_in=2000 * E6, amount1_out=1 * E18)

    async def test_creates_swap_record(self) -> None:
        swap = await self.h.store.get(Swap, f'{self.tx}-0')

        self.assertEqual(swap.pair_id, PAIR)
        self.assertEqual(swap.amount0_in, Decimal(2000))
        self.assertEqual(swap.amount1_out, Decimal(1))
        self.assertEqual(swap.amount_usd, Decimal(2000))
        self.assertEqual(swap.from_address, ALICE)
        self.assertEqual(swap.to, ALICE)

        transaction = await self.h.store.get(Transaction, self.tx)
        self.assertEqual(transaction.swap_count, 1)

    async def test_accumulates_pair_and_factory_volumes(self) -> None:
        pair = await self.h.store.get(Pair, PAIR)
        factory = await self.h.store.get(UniswapFactory, FACTORY)

        self.assertEqual(pair.volume_token0, Decimal(2000))
        self.assertEqual(pair.volume_token1, Decimal(1))
        self.assertEqual(pair.volume_usd, Decimal(2000))
        self.assertEqual(pair.untracked_volume_usd, Decimal(2000))
        self.assertEqual(pair.swap_count, 1)
        self.assertEqual(pair.tx_count, 1)
        self.assertEqual(factory.total_volume_usd, Decimal(2000))
        self.assertEqual(factory.total_volume_eth, Decimal(1))
        self.assertEqual(factory.tx_count, 1)

    async def test_charges_fees_on_input_side(self) -> None:
        usdc = await self.h.store.get(Token, USDC)
        weth = await self.h.store.get(Token, WETH)

        self.assertEqual(usdc.fees_usd, Decimal(6))
        self.assertEqual(weth.fees_usd, Decimal(0))
        self.assertEqual(usdc.trade_volume, Decimal(2000))
        self.assertEqual(weth.trade_volume_usd, Decimal(2000))

    async def test_layers_volume_on_buckets(self) -> None:
        day = self.h.timestamp // 86_400
        hour = self.h.timestamp // 3_600

        uniswap_day = await self.h.store.get(UniswapDayData, str(day))
        pair_day = await self.h.store.get(PairDayData, f'{PAIR}-{day}')
        pair_hour = await self.h.store.get(PairHourData, f'{PAIR}-{hour}')
        usdc_day = await self.h.store.get(TokenDayData, f'{USDC}-{day}')
        usdc_hour = await self.h.store.get(TokenHourData, f'{USDC}-{hour}')

        self.assertEqual(uniswap_day.daily_volume_usd, Decimal(2000))
        self.assertEqual(uniswap_day.daily_volume_eth, Decimal(1))
        self.assertEqual(uniswap_day.total_volume_usd, Decimal(2000))
        self.assertEqual(pair_day.daily_volume_usd, Decimal(2000))
        self.assertEqual(pair_day.daily_txns, 1)
        self.assertEqual(pair_hour.hourly_volume_token0, Decimal(2000))
        self.assertEqual(usdc_day.daily_volume_token, Decimal(2000))
        self.assertEqual(usdc_day.daily_volume_usd, Decimal(2000))
        self.assertEqual(usdc_hour.volume, Decimal(2000))
        self.assertEqual(usdc_hour.fees_usd, Decimal(6))
        self.assertEqual(usdc_hour.close_price, Decimal(1))

    async def test_second_swap_in_same_transaction(self) -> None:
        await self.h.swap(PAIR, amount1_in=1 * E18, amount0_out=2000 * E6)

        swaps = await self.h.store.get_where(Swap, 'transaction_id', self.tx)
        self.assertEqual([s.id for s in swaps], [f'{self.tx}-0', f'{self.tx}-1'])

        pair_day = await self.h.store.get(PairDayData, f'{PAIR}-{self.h.timestamp // 86_400}')
        self.assertEqual(pair_day.daily_volume_usd, Decimal(4000))
        self.assertEqual(pair_day.daily_txns, 2)


class UntrackedSwapTests(unittest.IsolatedAsyncioTestCase):
    async def test_falls_back_to_derived_value_without_whitelist(self) -> None:
        h = Harness()
        await h.priced_stable_pair()
        await h.pair_created(TOKEN_A, TOKEN_B, PAIR_A_B)
        await h.sync(PAIR_A_B, 1000 * E18, 1000 * E18)

        token_a = await h.store.get(Token, TOKEN_A)
        await h.store.set(token_a.model_copy(update={'derived_eth': Decimal('0.5')}))

        tx = h.new_tx()
        await h.swap(PAIR_A_B, amount0_in=10 * E18, amount1_out=9 * E18)

        swap = await h.store.get(Swap, f'{tx}-0')
        pair = await h.store.get(Pair, PAIR_A_B)

        self.assertEqual(pair.volume_usd, Decimal(0))
        # only token A is priced: 10 * 0.5 WETH at 2000 USD, not halved
        self.assertEqual(pair.untracked_volume_usd, Decimal(10000))
        self.assertEqual(swap.amount_usd, Decimal(10000))
