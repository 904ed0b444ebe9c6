import unittest
from decimal import Context, Decimal, getcontext, localcontext

from amm_indexer.app.domain.numeric import (
    ZERO_BD,
    convert_token_to_decimal,
    decimal_context,
    exponent_to_big_decimal,
    normalize_address,
    safe_div,
)


class NumericTests(unittest.TestCase):
    def test_scales_raw_amount_by_decimals(self) -> None:
        self.assertEqual(convert_token_to_decimal(1_500_000, 6), Decimal('1.5'))
        self.assertEqual(convert_token_to_decimal(2 * 10**18, 18), Decimal(2))

    def test_zero_decimals_returns_amount_unscaled(self) -> None:
        self.assertEqual(convert_token_to_decimal(42, 0), Decimal(42))

    def test_keeps_full_uint256_precision(self) -> None:
        raw = 2**256 - 1
        value = convert_token_to_decimal(raw, 18)
        with decimal_context():
            self.assertEqual(value * exponent_to_big_decimal(18), Decimal(raw))

    def test_helpers_ignore_ambient_precision(self) -> None:
        raw = 2**256 - 1
        with localcontext(Context(prec=5)):
            value = convert_token_to_decimal(raw, 18)
            ratio = safe_div(Decimal(2), Decimal(3))
        self.assertEqual(value, Decimal(f'{raw}E-18'))
        self.assertEqual(ratio.as_tuple().digits, (6,) * 77 + (7,))

    def test_decimal_context_is_scoped(self) -> None:
        outer = getcontext().prec
        with decimal_context() as ctx:
            self.assertEqual(ctx.prec, 78)
            self.assertEqual(getcontext().prec, 78)
        self.assertEqual(getcontext().prec, outer)

    def test_exponent_to_big_decimal(self) -> None:
        self.assertEqual(exponent_to_big_decimal(0), Decimal(1))
        self.assertEqual(exponent_to_big_decimal(6), Decimal(1_000_000))

    def test_safe_div_returns_zero_on_zero_divisor(self) -> None:
        self.assertEqual(safe_div(Decimal(5), ZERO_BD), ZERO_BD)
        self.assertEqual(safe_div(Decimal(5), Decimal(2)), Decimal('2.5'))

    def test_normalize_address(self) -> None:
        self.assertEqual(normalize_address('0xABCdef'), '0xabcdef')
        self.assertEqual(normalize_address('ABCDEF'), '0xabcdef')
        self.assertEqual(normalize_address(bytes.fromhex('00ff')), '0x00ff')
