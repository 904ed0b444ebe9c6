from __future__ import annotations

import logging
from typing import Any

from web3 import AsyncWeb3
from web3.contract.async_contract import AsyncContract
from web3.exceptions import BadFunctionCallOutput, ContractLogicError

from amm_indexer.app.domain.chain_config import ChainConfig
from amm_indexer.app.domain.ports.out import Erc20TokenMetadataFetcher, TokenMetadata

logger = logging.getLogger(__name__)

UNKNOWN_SYMBOL = "UNKNOWN"
UNKNOWN_NAME = "Unknown Token"

# Minimal ERC-20 ABI fragments
_ERC20_ABI_STD = [
    {"name": "symbol", "type": "function", "stateMutability": "view", "inputs": [], "outputs": [{"name": "", "type": "string"}]},
    {"name": "decimals", "type": "function", "stateMutability": "view", "inputs": [], "outputs": [{"name": "", "type": "uint8"}]},
    {"name": "name", "type": "function", "stateMutability": "view", "inputs": [], "outputs": [{"name": "", "type": "string"}]},
    {"name": "totalSupply", "type": "function", "stateMutability": "view", "inputs": [], "outputs": [{"name": "", "type": "uint256"}]},
    {"name": "balanceOf", "type": "function", "stateMutability": "view", "inputs": [{"name": "owner", "type": "address"}], "outputs": [{"name": "", "type": "uint256"}]},
]

_ERC20_ABI_LEGACY = [
    {"name": "symbol", "type": "function", "stateMutability": "view", "inputs": [], "outputs": [{"name": "", "type": "bytes32"}]},
    {"name": "decimals", "type": "function", "stateMutability": "view", "inputs": [], "outputs": [{"name": "", "type": "uint256"}]},
    {"name": "name", "type": "function", "stateMutability": "view", "inputs": [], "outputs": [{"name": "", "type": "bytes32"}]},
]

# bytes32 value some broken tokens return instead of a symbol / name
_NULL_ETH_VALUE = (1).to_bytes(32, byteorder="big")


class Web3Erc20TokenMetadataFetcher(Erc20TokenMetadataFetcher):
    """
    ERC-20 metadata and balance fetcher using AsyncWeb3.

    Resolution order per field:
      static token definition -> standard ABI -> bytes32 legacy ABI -> default.

    Defaults: symbol "UNKNOWN", name "Unknown Token", total supply 0,
    decimals `default_decimals` (None unless configured). Metadata is
    memoized per instance; balances are always read live.

    Addresses are 0x-prefixed hex strings.
    """

    def __init__(
        self,
        *,
        w3: AsyncWeb3,
        config: ChainConfig,
        default_decimals: int | None = None,
    ) -> None:
        self._w3 = w3
        self._config = config
        self._default_decimals = default_decimals
        self._cache: dict[str, TokenMetadata] = {}

    async def fetch_metadata(self, *, token_address: str) -> TokenMetadata:
        key = token_address.lower()
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        metadata = await self._resolve_metadata(key)
        self._cache[key] = metadata
        return metadata

    async def fetch_balance(self, *, token_address: str, user_address: str) -> int:
        contract = self._contract(token_address, _ERC20_ABI_STD)
        owner = self._w3.to_checksum_address(user_address)
        raw = await self._safe_call(contract, "balanceOf", owner)
        if isinstance(raw, int):
            return raw
        logger.warning(
            "balanceOf failed, assuming zero balance",
            extra={"token_address": token_address, "user_address": user_address},
        )
        return 0

    async def _resolve_metadata(self, token_address: str) -> TokenMetadata:
        contract_std = self._contract(token_address, _ERC20_ABI_STD)
        total_supply = await self._fetch_total_supply(contract_std, token_address)

        static = self._config.static_definition(token_address)
        if static is not None:
            return TokenMetadata(
                symbol=static.symbol,
                name=static.name,
                decimals=static.decimals,
                total_supply=total_supply,
            )

        contract_legacy = self._contract(token_address, _ERC20_ABI_LEGACY)

        # 1) Try standard
        symbol = self._normalize_symbol_name(await self._safe_call(contract_std, "symbol"))
        name = self._normalize_symbol_name(await self._safe_call(contract_std, "name"))
        decimals = self._normalize_decimals(await self._safe_call(contract_std, "decimals"))

        # 2) Fallback to legacy only for missing fields
        if symbol is None:
            symbol = self._normalize_symbol_name(await self._safe_call(contract_legacy, "symbol"))
        if name is None:
            name = self._normalize_symbol_name(await self._safe_call(contract_legacy, "name"))
        if decimals is None:
            decimals = self._normalize_decimals(await self._safe_call(contract_legacy, "decimals"))

        if symbol is None or name is None or decimals is None:
            logger.warning(
                "Incomplete ERC-20 metadata, using defaults",
                extra={
                    "token_address": token_address,
                    "symbol": symbol,
                    "name": name,
                    "decimals": decimals,
                },
            )

        return TokenMetadata(
            symbol=symbol or UNKNOWN_SYMBOL,
            name=name or UNKNOWN_NAME,
            decimals=decimals if decimals is not None else self._default_decimals,
            total_supply=total_supply,
        )

    async def _fetch_total_supply(self, contract: AsyncContract, token_address: str) -> int:
        if token_address in self._config.skip_total_supply:
            return 0
        raw = await self._safe_call(contract, "totalSupply")
        return raw if isinstance(raw, int) else 0

    def _contract(self, address: str, abi: list[dict[str, Any]]) -> AsyncContract:
        # web3 expects checksum hex string
        return self._w3.eth.contract(address=self._w3.to_checksum_address(address), abi=abi)

    @staticmethod
    def _normalize_decimals(val: Any) -> int | None:
        if isinstance(val, int) and 0 <= val <= 255:
            return int(val)
        return None

    @staticmethod
    def _normalize_symbol_name(val: Any) -> str | None:
        if val is None:
            return None

        if isinstance(val, str):
            return val.strip() or None

        if isinstance(val, (bytes, bytearray, memoryview)):
            b = bytes(val)
            if b == _NULL_ETH_VALUE:
                return None
            try:
                return b.rstrip(b"\x00").decode("utf-8").strip() or None
            except UnicodeDecodeError:
                return None

        return None

    async def _safe_call(self, contract: AsyncContract, fn_name: str, *args: Any) -> Any | None:
        try:
            fn = getattr(contract.functions, fn_name)
            return await fn(*args).call()
        except (BadFunctionCallOutput, ContractLogicError, ValueError):
            # Non-ERC20, proxy weirdness, revert, or empty response
            return None
        except Exception as exc:
            # Network / timeout / provider error, after web3 retries
            logger.warning(
                "%s() call failed for %s: %s",
                fn_name,
                contract.address,
                exc,
            )
            return None
