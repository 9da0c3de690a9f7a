"""Client configuration with environment variable loading.

Pydantic-based configuration for the result stores, feed loaders and the
chat stream reader. Service URLs default to the local development ports.
"""

import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

# Load environment variables from .env file
load_dotenv()


class ClientConfig(BaseModel):
    """Configuration for the Helix streaming client.

    Attributes:
        api_base_url: Phenotype matching service base URL.
        literature_api_url: Literature mining service base URL.
        ai_service_url: AI chat service base URL.
        request_timeout: Per-request timeout in seconds.
        cache_size: Number of sessions kept in each result cache.
        gene_batch_size: Gene records between progress updates.
        publication_batch_size: Publication records between progress updates.
        literature_gene_limit: Top phenotype genes forwarded to literature search.
        literature_result_limit: Maximum publications requested per search.
    """

    api_base_url: str = Field(
        default_factory=lambda: os.getenv("HELIX_API_URL", "http://localhost:9000"),
        validate_default=True,
        description="Phenotype matching service base URL",
    )
    literature_api_url: str = Field(
        default_factory=lambda: os.getenv("HELIX_LITERATURE_API_URL", "http://localhost:9004"),
        validate_default=True,
        description="Literature mining service base URL",
    )
    ai_service_url: str = Field(
        default_factory=lambda: os.getenv("HELIX_AI_SERVICE_URL", "http://localhost:9007"),
        validate_default=True,
        description="AI chat service base URL",
    )
    request_timeout: float = Field(
        default_factory=lambda: float(os.getenv("HELIX_TIMEOUT", "120.0")),
        validate_default=True,
        gt=0.0,
        description="Request timeout in seconds",
    )
    cache_size: int = Field(
        default=3,
        ge=1,
        le=32,
        description="Sessions kept per result cache",
    )
    gene_batch_size: int = Field(default=50, ge=1, description="Gene records per progress update")
    publication_batch_size: int = Field(
        default=10, ge=1, description="Publication records per progress update"
    )
    literature_gene_limit: int = Field(
        default=10, ge=1, description="Top phenotype genes used for literature search"
    )
    literature_result_limit: int = Field(
        default=50, ge=1, description="Maximum publications requested per search"
    )

    @field_validator("api_base_url", "literature_api_url", "ai_service_url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Normalize service URLs and require an HTTP scheme."""
        v = v.strip().rstrip("/")
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"Service URL must start with http:// or https://, got {v!r}")
        return v


def get_client_config() -> ClientConfig:
    """Create client configuration from environment.

    Returns:
        Configured ClientConfig instance.

    Raises:
        ValueError: If a configured URL or timeout is invalid.
    """
    return ClientConfig()
