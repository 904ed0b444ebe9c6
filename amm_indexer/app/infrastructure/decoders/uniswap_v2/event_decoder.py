from __future__ import annotations

import json
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Any, Mapping

from eth_abi import decode as abi_decode
from eth_abi.exceptions import DecodingError
from eth_utils import keccak

from amm_indexer.app.domain.ports.out import EvmEventDecoder


class _EventLayout:
    """Pre-computed topic0 and indexed / non-indexed split of one event ABI."""

    def __init__(self, event_abi: Mapping[str, Any]) -> None:
        self.name: str = event_abi["name"]
        inputs: list[dict[str, Any]] = list(event_abi.get("inputs", []))
        self.signature = f"{self.name}({','.join(i['type'] for i in inputs)})"
        self.topic0 = keccak(text=self.signature)

        self.indexed = [i for i in inputs if i.get("indexed") is True]
        self.non_indexed = [i for i in inputs if not i.get("indexed")]
        self.non_indexed_types = [i["type"] for i in self.non_indexed]


class UniswapV2EventDecoder(EvmEventDecoder):
    """
    ABI-based decoder for the Uniswap v2 factory and pair events.

    It:
    - loads one or more ABI JSON files,
    - keeps the requested events, keyed by topic0,
    - decodes indexed args from topics and non-indexed args from `data`.

    Output dict carries the ABI argument names plus `event` (the event name).
    Addresses come out as 20-byte `bytes`, integers as `int`.
    """

    def __init__(self, *, abi_paths: Sequence[Path], event_names: Iterable[str]) -> None:
        abi: list[dict[str, Any]] = []
        for path in abi_paths:
            abi.extend(self._load_abi(path))

        self._layouts: dict[bytes, _EventLayout] = {}
        for event_name in event_names:
            layout = _EventLayout(self._find_event(abi, event_name))
            self._layouts[layout.topic0] = layout

    @property
    def topic0s(self) -> list[bytes]:
        return list(self._layouts)

    def topic0_of(self, event_name: str) -> bytes:
        for topic0, layout in self._layouts.items():
            if layout.name == event_name:
                return topic0
        raise KeyError(event_name)

    def decode(
        self,
        *,
        topic0: bytes | None,
        topic1: bytes | None,
        topic2: bytes | None,
        topic3: bytes | None,
        data: bytes,
    ) -> dict[str, Any] | None:
        if topic0 is None:
            return None
        layout = self._layouts.get(bytes(topic0))
        if layout is None:
            return None

        topics = (topic1, topic2, topic3)
        n_indexed = len(layout.indexed)
        # same topic0, different indexing (ERC-721 Transfer carries tokenId in topic3)
        if any(t is None for t in topics[:n_indexed]) or any(t is not None for t in topics[n_indexed:]):
            return None

        out: dict[str, Any] = {"event": layout.name}

        for inp, topic in zip(layout.indexed, topics):
            out[inp["name"]] = self._decode_topic(inp["type"], bytes(topic))  # type: ignore[arg-type]

        if layout.non_indexed:
            try:
                values = abi_decode(layout.non_indexed_types, bytes(data or b""))
            except DecodingError:
                return None
            for inp, val in zip(layout.non_indexed, values, strict=True):
                out[inp["name"]] = self._normalize_abi_value(inp["type"], val)

        return out

    # ---------------------------------------------------------------------
    # ABI helpers
    # ---------------------------------------------------------------------

    def _load_abi(self, abi_path: Path) -> list[dict[str, Any]]:
        if not abi_path.exists():
            raise FileNotFoundError(f"ABI file not found: {abi_path}")
        data = json.loads(abi_path.read_text(encoding="utf-8"))

        # [ ... ] or { "abi": [ ... ] }
        if isinstance(data, list):
            abi = data
        elif isinstance(data, dict) and isinstance(data.get("abi"), list):
            abi = data["abi"]
        else:
            raise ValueError(
                f"Unsupported ABI JSON format in {abi_path}. Expected list or dict with 'abi' list."
            )
        return [x for x in abi if isinstance(x, dict)]

    def _find_event(self, abi: list[dict[str, Any]], event_name: str) -> dict[str, Any]:
        events = [x for x in abi if x.get("type") == "event" and x.get("name") == event_name]
        if not events:
            names = sorted({x.get("name") for x in abi if x.get("type") == "event"})
            raise ValueError(f"Event {event_name!r} not found in ABI. Available events: {names}")
        if len(events) > 1:
            raise ValueError(
                f"Multiple events named {event_name!r} found in ABI. "
                "Disambiguation by full signature is required."
            )
        return events[0]

    # ---------------------------------------------------------------------
    # Topic / ABI value normalization
    # ---------------------------------------------------------------------

    def _decode_topic(self, typ: str, topic: bytes) -> Any:
        if len(topic) != 32:
            raise ValueError(f"Expected 32 bytes (bytes32 topic), got len={len(topic)}")
        if typ == "address":
            return topic[-20:]
        if typ.startswith("uint"):
            return int.from_bytes(topic, byteorder="big", signed=False)
        if typ.startswith("int"):
            return int.from_bytes(topic, byteorder="big", signed=True)
        return topic

    def _normalize_abi_value(self, typ: str, val: Any) -> Any:
        if typ == "address":
            # eth_abi yields checksummed hex strings for addresses
            if isinstance(val, str):
                return bytes.fromhex(val[2:] if val.startswith("0x") else val)
            if isinstance(val, (bytes, bytearray)):
                return bytes(val)
            return val

        if typ.startswith("uint") or typ.startswith("int"):
            return int(val)

        if typ.startswith("bytes") and isinstance(val, (bytes, bytearray, memoryview)):
            return bytes(val)

        return val
