import unittest
from pathlib import Path

from eth_abi import encode as abi_encode
from eth_utils import keccak

from amm_indexer.app.domain.events import EventMeta, PairCreatedEvent, SwapEvent
from amm_indexer.app.infrastructure.adapters.sources.evm_event_logs_source import _to_event
from amm_indexer.app.infrastructure.decoders.uniswap_v2.event_decoder import UniswapV2EventDecoder

from tests.amm_fixtures import ALICE, FACTORY, PAIR_A_WETH, ROUTER, TOKEN_A, WETH, tx_hash

ABI_DIR = Path(__file__).resolve().parents[1] / 'amm_indexer' / 'app' / 'registry' / 'abi'
EVENT_NAMES = ('PairCreated', 'Transfer', 'Mint', 'Burn', 'Swap', 'Sync')


def _topic(address: str) -> bytes:
    return bytes(12) + bytes.fromhex(address[2:])


def _meta(src: str) -> EventMeta:
    return EventMeta(
        chain_id=1329,
        block_number=100,
        block_timestamp=1_700_000_000,
        transaction_hash=tx_hash(7),
        transaction_index=3,
        log_index=9,
        src_address=src,
    )


class UniswapV2EventDecoderTests(unittest.TestCase):
    def setUp(self) -> None:
        self.decoder = UniswapV2EventDecoder(
            abi_paths=[ABI_DIR / 'UniswapV2Factory.json', ABI_DIR / 'UniswapV2Pair.json'],
            event_names=EVENT_NAMES,
        )

    def test_topic0s_are_event_signature_hashes(self) -> None:
        self.assertEqual(len(self.decoder.topic0s), 6)
        self.assertEqual(
            self.decoder.topic0_of('Sync'),
            keccak(text='Sync(uint112,uint112)'),
        )
        self.assertEqual(
            self.decoder.topic0_of('Swap'),
            keccak(text='Swap(address,uint256,uint256,uint256,uint256,address)'),
        )

    def test_decodes_swap(self) -> None:
        decoded = self.decoder.decode(
            topic0=self.decoder.topic0_of('Swap'),
            topic1=_topic(ROUTER),
            topic2=_topic(ALICE),
            topic3=None,
            data=abi_encode(['uint256'] * 4, [5, 0, 0, 7]),
        )

        self.assertEqual(decoded['event'], 'Swap')
        self.assertEqual(decoded['sender'], bytes.fromhex(ROUTER[2:]))
        self.assertEqual(decoded['to'], bytes.fromhex(ALICE[2:]))
        self.assertEqual(decoded['amount0In'], 5)
        self.assertEqual(decoded['amount1Out'], 7)

        event = _to_event(decoded, _meta(PAIR_A_WETH))
        self.assertIsInstance(event, SwapEvent)
        self.assertEqual(event.sender, ROUTER)
        self.assertEqual(event.to, ALICE)
        self.assertEqual((event.amount0_in, event.amount1_in, event.amount0_out, event.amount1_out), (5, 0, 0, 7))

    def test_decodes_sync(self) -> None:
        decoded = self.decoder.decode(
            topic0=self.decoder.topic0_of('Sync'),
            topic1=None,
            topic2=None,
            topic3=None,
            data=abi_encode(['uint112', 'uint112'], [10**21, 3 * 10**18]),
        )

        self.assertEqual(decoded, {'event': 'Sync', 'reserve0': 10**21, 'reserve1': 3 * 10**18})

    def test_decodes_pair_created(self) -> None:
        decoded = self.decoder.decode(
            topic0=self.decoder.topic0_of('PairCreated'),
            topic1=_topic(TOKEN_A),
            topic2=_topic(WETH),
            topic3=None,
            data=abi_encode(['address', 'uint256'], [PAIR_A_WETH, 1]),
        )

        event = _to_event(decoded, _meta(FACTORY))
        self.assertIsInstance(event, PairCreatedEvent)
        self.assertEqual(event.token0, TOKEN_A)
        self.assertEqual(event.token1, WETH)
        self.assertEqual(event.pair, PAIR_A_WETH)

    def test_unknown_topic0_is_ignored(self) -> None:
        decoded = self.decoder.decode(
            topic0=keccak(text='Approval(address,address,uint256)'),
            topic1=_topic(ALICE),
            topic2=_topic(ROUTER),
            topic3=None,
            data=abi_encode(['uint256'], [1]),
        )
        self.assertIsNone(decoded)

    def test_missing_indexed_topic_is_ignored(self) -> None:
        decoded = self.decoder.decode(
            topic0=self.decoder.topic0_of('Transfer'),
            topic1=_topic(ALICE),
            topic2=None,
            topic3=None,
            data=abi_encode(['uint256'], [1]),
        )
        self.assertIsNone(decoded)

    def test_erc721_transfer_is_ignored(self) -> None:
        decoded = self.decoder.decode(
            topic0=self.decoder.topic0_of('Transfer'),
            topic1=_topic(ROUTER),
            topic2=_topic(ALICE),
            topic3=(42).to_bytes(32, 'big'),
            data=b'',
        )
        self.assertIsNone(decoded)

    def test_truncated_data_is_ignored(self) -> None:
        decoded = self.decoder.decode(
            topic0=self.decoder.topic0_of('Sync'),
            topic1=None,
            topic2=None,
            topic3=None,
            data=abi_encode(['uint112'], [1]),
        )
        self.assertIsNone(decoded)

    def test_unknown_event_name_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            UniswapV2EventDecoder(abi_paths=[ABI_DIR / 'UniswapV2Pair.json'], event_names=['Approval'])
