from __future__ import annotations

from sqlalchemy import BigInteger, Identity, Index, PrimaryKeyConstraint, String, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from amm_indexer.app.infrastructure.db.db_base import BaseDB


class AmmEntitiesDB(BaseDB):
    """
    Domain table holding the AMM subgraph entity graph.

    Each row is one entity (factory, bundle, token, pair, transaction,
    mint / burn / swap, liquidity position, snapshot or time bucket),
    identified by (entity_type, entity_id). The entity body is stored as
    JSONB; decimals are serialized as strings to keep full precision.

    `seq` is assigned once, on first insert, and never changes on upsert:
    relationship lookups order by it to return entities in creation order.
    """

    __tablename__ = "amm_entities"
    __table_args__ = (
        PrimaryKeyConstraint("entity_type", "entity_id"),

        # Relationship lookups: payload ->> field = value, ordered by seq
        Index(
            "ix_amm_entities_transaction_id",
            "entity_type",
            text("(payload ->> 'transaction_id')"),
            "seq",
        ),
        Index(
            "ix_amm_entities_pair_id",
            "entity_type",
            text("(payload ->> 'pair_id')"),
            "seq",
        ),
        Index(
            "ix_amm_entities_token_id",
            "entity_type",
            text("(payload ->> 'token_id')"),
            "seq",
        ),

        {"schema": "domain"},
    )

    """Entity class name, e.g. 'Pair', 'TokenHourData'."""
    entity_type: Mapped[str] = mapped_column(String(64), nullable=False)

    """Entity id: lower-case address, tx hash or composite key."""
    entity_id: Mapped[str] = mapped_column(String(256), nullable=False)

    """Creation order (bigserial)."""
    seq: Mapped[int] = mapped_column(BigInteger, Identity(always=False), nullable=False)

    """Entity body (pydantic JSON dump)."""
    payload: Mapped[dict] = mapped_column(JSONB, nullable=False)
