from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from amm_indexer.app.domain.numeric import normalize_address


class StaticTokenDefinition(BaseModel):
    """On-chain metadata override for tokens whose ERC-20 getters are broken."""

    model_config = ConfigDict(frozen=True)

    address: str
    symbol: str
    name: str
    decimals: int

    @field_validator("address")
    @classmethod
    def _lower_address(cls, v: str) -> str:
        return normalize_address(v)


class ChainConfig(BaseModel):
    """
    Per-deployment pricing and tracking parameters.

    Threaded explicitly through handlers and the pricing engine; nothing in
    the core reads chain configuration from module state.
    """

    model_config = ConfigDict(frozen=True)

    chain_id: int
    name: str = ""

    factory_address: str
    reference_token: str

    # reference-token / stablecoin pairs used to price the reference token
    stable_token_pairs: tuple[str, ...] = ()
    # tokens whose amounts count towards tracked volume and liquidity
    whitelist: frozenset[str] = frozenset()
    # accepted counter tokens of stable_token_pairs; empty accepts any
    stablecoins: frozenset[str] = frozenset()

    # minimum liquidity required to count towards tracked volume for pairs with few LPs
    minimum_usd_threshold_new_pairs: Decimal = Decimal("4000")
    # minimum liquidity for price to get tracked
    minimum_liquidity_threshold_eth: Decimal = Decimal("1")
    # below this many LPs a pair is subject to the new-pair threshold
    minimum_liquidity_providers: int = 5

    swap_fee_percent: Decimal = Decimal("0.003")

    static_token_definitions: tuple[StaticTokenDefinition, ...] = ()
    skip_total_supply: frozenset[str] = frozenset()

    start_block: int | None = Field(default=None)

    @field_validator("factory_address", "reference_token")
    @classmethod
    def _lower_address(cls, v: str) -> str:
        return normalize_address(v)

    @field_validator("stable_token_pairs", mode="before")
    @classmethod
    def _lower_pairs(cls, v: object) -> object:
        if isinstance(v, (list, tuple)):
            return tuple(normalize_address(a) for a in v)
        return v

    @field_validator("whitelist", "stablecoins", "skip_total_supply", mode="before")
    @classmethod
    def _lower_sets(cls, v: object) -> object:
        if isinstance(v, (list, tuple, set, frozenset)):
            return frozenset(normalize_address(a) for a in v)
        return v

    def is_whitelisted(self, token_id: str) -> bool:
        return token_id in self.whitelist

    def static_definition(self, token_address: str) -> StaticTokenDefinition | None:
        address = normalize_address(token_address)
        for definition in self.static_token_definitions:
            if definition.address == address:
                return definition
        return None
