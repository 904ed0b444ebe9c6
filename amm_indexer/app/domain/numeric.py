from __future__ import annotations

from contextlib import AbstractContextManager
from decimal import Context, Decimal, localcontext
from typing import Final

# uint256 amounts have 78 decimal digits
DECIMAL_CONTEXT: Final[Context] = Context(prec=78)

ADDRESS_ZERO: Final[str] = "0x0000000000000000000000000000000000000000"

ZERO_BI: Final[int] = 0
ONE_BI: Final[int] = 1
BI_18: Final[int] = 18

ZERO_BD: Final[Decimal] = Decimal(0)
ONE_BD: Final[Decimal] = Decimal(1)
ALMOST_ZERO_BD: Final[Decimal] = Decimal("0.000001")


def decimal_context() -> AbstractContextManager[Context]:
    """Arithmetic scope with DECIMAL_CONTEXT as the current decimal context."""
    return localcontext(DECIMAL_CONTEXT)


def exponent_to_big_decimal(decimals: int) -> Decimal:
    bd = ONE_BD
    for _ in range(decimals):
        bd = DECIMAL_CONTEXT.multiply(bd, Decimal(10))
    return bd


def convert_token_to_decimal(token_amount: int, exchange_decimals: int) -> Decimal:
    """
    Scale a raw on-chain integer amount into token units.

    A token with zero decimals is returned unscaled.
    """
    if exchange_decimals == ZERO_BI:
        return Decimal(token_amount)
    return DECIMAL_CONTEXT.divide(Decimal(token_amount), exponent_to_big_decimal(exchange_decimals))


def safe_div(amount0: Decimal, amount1: Decimal) -> Decimal:
    if amount1 == ZERO_BD:
        return ZERO_BD
    return DECIMAL_CONTEXT.divide(amount0, amount1)


def normalize_address(address: str | bytes) -> str:
    """
    Canonical string form used for entity ids: 0x-prefixed lower-case hex.
    """
    if isinstance(address, (bytes, bytearray, memoryview)):
        return "0x" + bytes(address).hex()
    value = address.strip().lower()
    if not value.startswith("0x"):
        value = "0x" + value
    return value
