from __future__ import annotations


class AmmIndexerError(Exception):
    """Base class for errors raised by the indexer."""


class ConfigurationError(AmmIndexerError):
    """Invalid or incomplete deployment configuration. Fatal at startup."""


class HandlerError(AmmIndexerError):
    """
    An event could not be applied to the entity graph.

    Raised by handlers and absorbed by the EventProcessor, which logs it and
    moves on to the next event.
    """


class MissingEntityError(HandlerError):
    def __init__(self, entity_type: str, entity_id: str) -> None:
        super().__init__(f"{entity_type} {entity_id!r} not found")
        self.entity_type = entity_type
        self.entity_id = entity_id


class TokenMetadataError(HandlerError):
    def __init__(self, token_address: str, detail: str) -> None:
        super().__init__(f"{detail} for token {token_address}")
        self.token_address = token_address
