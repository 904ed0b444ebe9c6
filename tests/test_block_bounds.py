import unittest

from amm_indexer.app.application.services.block_bounds import (
    _parse_selector,
    resolve_block_bounds_from_table,
)


class ParseSelectorTests(unittest.TestCase):
    def test_numbers_pass_through(self) -> None:
        self.assertEqual(_parse_selector(42, 'latest'), 42)
        self.assertEqual(_parse_selector(' 42 ', 'latest'), 42)

    def test_keywords_defer_to_table(self) -> None:
        self.assertIsNone(_parse_selector('earliest', 'earliest'))
        self.assertIsNone(_parse_selector('LATEST', 'latest'))
        self.assertIsNone(_parse_selector('', 'latest'))

    def test_rejects_unknown_selector(self) -> None:
        with self.assertRaises(ValueError):
            _parse_selector('finalized', 'latest')


class ResolveBlockBoundsTests(unittest.IsolatedAsyncioTestCase):
    async def test_concrete_bounds_skip_the_database(self) -> None:
        bounds = await resolve_block_bounds_from_table(
            engine=None,
            chain_id=1329,
            from_block='100',
            to_block=200,
            source_table='staging.evm_event_logs',
        )
        self.assertEqual(bounds, (100, 200))

    async def test_earliest_uses_configured_start_block(self) -> None:
        bounds = await resolve_block_bounds_from_table(
            engine=None,
            chain_id=1329,
            from_block='earliest',
            to_block=500,
            source_table='staging.evm_event_logs',
            start_block=79_123_881,
        )
        self.assertEqual(bounds, (79_123_881, 500))
