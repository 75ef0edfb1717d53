from __future__ import annotations

from typing import Annotated, Literal
from urllib.parse import urlparse

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

ServiceMode = Literal["federation", "nested"]


class Config(BaseSettings):
    """Centralized, type-safe configuration loaded from environment variables.

    Uses pydantic-settings to support .env files and runtime validation.
    """

    # Search engine
    ELASTICSEARCH_URL: str = Field(
        default="http://localhost:9200",
        description="Base URL of the Elasticsearch node the service talks to.",
    )

    COMPANY_INDEX: str = Field(default="company", min_length=1, description="Index holding parent (company) documents.")
    REPORT_INDEX: str = Field(default="reports", min_length=1, description="Index holding child (report) documents.")
    NESTED_INDEX: str = Field(
        default="parents",
        min_length=1,
        description="Index holding parent documents with an embedded nested children collection.",
    )

    SERVICE_MODE: ServiceMode = Field(
        default="federation",
        description="Which HTTP surface to expose: two-index federation or single-index nested search.",
    )

    # Query execution
    CHILD_PAGE_SIZE: int = Field(
        default=1000,
        ge=1,
        le=10000,
        description="Page size used while iterating every matching child document.",
    )
    SEARCH_TIMEOUT: float = Field(
        default=30.0,
        gt=0,
        description="Per-request timeout in seconds for every search engine call.",
    )

    # API configuration
    API_HOST: str = Field(default="127.0.0.1", description="Bind host for `serve`.")
    API_PORT: int = Field(default=3000, ge=1, le=65535, description="Bind port for `serve`.")
    # NoDecode: the env value reaches parse_cors_origins raw, so comma-separated strings work
    API_CORS_ORIGINS: Annotated[list[str], NoDecode] = Field(
        default_factory=list,
        description="Allowed CORS origins for FastAPI (comma-separated env or JSON list).",
    )

    LOG_LEVEL: str = Field(default="INFO", description="Root log level used by the CLI.")

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @field_validator("ELASTICSEARCH_URL")
    @classmethod
    def normalize_elasticsearch_url(cls, value: str) -> str:
        value = value.strip()
        if value.endswith("/"):
            value = value[:-1]
        parsed = urlparse(value)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError("ELASTICSEARCH_URL must be a valid http(s) URL")
        return value

    @field_validator("LOG_LEVEL")
    @classmethod
    def normalize_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(f"LOG_LEVEL must be a standard logging level, got {value!r}")
        return level

    @field_validator("API_CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):  # type: ignore[no-redef]
        """
        Accept list[str], JSON array string, or comma-separated string.

        Examples:
            - None or "" → []
            - ["http://localhost:3000"] → ["http://localhost:3000"]
            - '["http://localhost:3000"]' → ["http://localhost:3000"]
            - "http://localhost:3000,http://127.0.0.1:5173" → ["http://localhost:3000", "http://127.0.0.1:5173"]
        """
        if v is None or v == "":
            return []
        if isinstance(v, list):
            return [str(s).strip() for s in v if str(s).strip()]
        if isinstance(v, str):
            s = v.strip()
            # Try JSON parsing first if it looks like a JSON array
            if s.startswith("["):
                import json

                try:
                    arr = json.loads(s)
                    return [str(x).strip() for x in arr if str(x).strip()]
                except ValueError:
                    # Fall back to comma-separated parsing
                    pass
            return [p.strip() for p in s.split(",") if p.strip()]
        return [str(v).strip()]

    # Convenience helpers
    def index_names(self, mode: ServiceMode | None = None) -> list[str]:
        """Indices the given (or configured) mode reads from."""
        if (mode or self.SERVICE_MODE) == "nested":
            return [self.NESTED_INDEX]
        return [self.COMPANY_INDEX, self.REPORT_INDEX]


# Eagerly load configuration at import time for convenience across modules
config = Config()
