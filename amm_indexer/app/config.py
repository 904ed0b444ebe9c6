"""Config file."""
import json
from functools import lru_cache
from pathlib import Path
from urllib.parse import quote_plus

from pydantic import Field, SecretStr, ValidationError, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from amm_indexer.app.domain.chain_config import ChainConfig
from amm_indexer.app.domain.errors import ConfigurationError

_DEFAULT_CHAIN_REGISTRY_PATH = Path(__file__).resolve().parent / "registry" / "chains"


class Settings(BaseSettings):
    """Application settings."""

    # PROJECT
    project_name: str = Field("amm-indexer", alias="PROJECT_NAME")

    # DATABASE
    postgres_user: str = Field("postgres", alias="POSTGRES_USER")
    postgres_password: SecretStr = Field(SecretStr(""), alias="POSTGRES_PASSWORD")
    postgres_server: str = Field("localhost", alias="POSTGRES_SERVER")
    postgres_port: int = Field(5432, alias="POSTGRES_PORT")
    postgres_db: str = Field("indexer", alias="POSTGRES_DB")
    database_url: str | None = Field(None, alias="DATABASE_URL")
    sync_database_url: str | None = Field(None, alias="SYNC_DATABASE_URL")

    # CHAIN ACCESS
    # JSON object: {"1329": "https://..."}
    rpc_urls: dict[int, str] = Field(default_factory=dict, alias="RPC_URLS")
    chain_registry_path: Path = Field(_DEFAULT_CHAIN_REGISTRY_PATH, alias="CHAIN_REGISTRY_PATH")

    # INDEXING
    indexer_preload: bool = Field(False, alias="INDEXER_PRELOAD")
    # decimals assumed when a token exposes none; None leaves such tokens unindexed
    token_default_decimals: int | None = Field(None, alias="TOKEN_DEFAULT_DECIMALS")

    @model_validator(mode="after")
    def assemble_db_urls(self) -> "Settings":
        user = quote_plus(self.postgres_user)
        password = quote_plus(self.postgres_password.get_secret_value())
        host = self.postgres_server
        port = self.postgres_port
        db = self.postgres_db

        if not self.database_url:
            self.database_url = f"postgresql+asyncpg://{user}:{password}@{host}:{port}/{db}"

        if not self.sync_database_url:
            self.sync_database_url = f"postgresql://{user}:{password}@{host}:{port}/{db}"

        return self

    def rpc_url(self, chain_id: int) -> str:
        try:
            return self.rpc_urls[chain_id]
        except KeyError:
            raise ConfigurationError(f"RPC URL not configured for chain {chain_id}")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()


def load_chain_config(chain_id: int, registry_path: Path | None = None) -> ChainConfig:
    """
    Load the pricing / tracking parameters of one chain from the JSON chain
    registry (`<registry_path>/<chain_id>.json`).
    """
    base = registry_path or get_settings().chain_registry_path
    path = Path(base) / f"{chain_id}.json"
    if not path.exists():
        raise ConfigurationError(f"Unsupported chain {chain_id}: no registry entry at {path}")

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
        config = ChainConfig.model_validate(raw)
    except (json.JSONDecodeError, ValidationError) as exc:
        raise ConfigurationError(f"Invalid chain registry entry {path}: {exc}") from exc

    if config.chain_id != chain_id:
        raise ConfigurationError(
            f"Chain registry entry {path} declares chain_id={config.chain_id}, expected {chain_id}"
        )
    return config
