"""Configuration management using Pydantic Settings."""

from typing import List, Optional
from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings with environment variable support.

    All settings can be overridden using environment variables or .env file.
    """

    # Neo4j Database Configuration
    neo4j_uri: str = Field(
        default="bolt://localhost:7687",
        description="Neo4j database connection URI"
    )
    neo4j_user: str = Field(
        default="neo4j",
        description="Neo4j username"
    )
    neo4j_password: str = Field(
        ...,
        description="Neo4j password (required)"
    )

    # API Configuration
    api_key: Optional[str] = Field(
        default=None,
        description="API key for authentication. If not set, authentication is disabled (dev mode)"
    )

    # FMCSA Registry Configuration
    fmcsa_api_key: Optional[str] = Field(
        default=None,
        description="FMCSA web key. Seeds the cached credential; the stored key record is used when unset"
    )
    fmcsa_base_url: str = Field(
        default="https://mobile.fmcsa.dot.gov/qc/services",
        description="Base URL of the FMCSA QCMobile API"
    )
    fmcsa_api_key_record_id: int = Field(
        default=6,
        description="Identifier of the stored API key record holding the FMCSA web key"
    )
    use_db_api_key: bool = Field(
        default=True,
        description="Fall back to the stored API key record when no key is cached"
    )
    fmcsa_request_timeout: float = Field(
        default=30.0,
        description="Timeout in seconds for a single FMCSA request"
    )
    fmcsa_rate_limit_delay: float = Field(
        default=0.0,
        ge=0,
        description="Minimum seconds between FMCSA requests (0 disables rate limiting)"
    )

    # Batch Import
    import_batch_size: int = Field(
        default=10,
        ge=1,
        description="Number of carriers saved per batch window"
    )
    import_batch_delay_seconds: float = Field(
        default=0.1,
        ge=0,
        description="Pause between batch windows"
    )

    # CORS
    cors_origins: List[str] = Field(
        default=["*"],
        description="Origins allowed to call the API from a browser (JSON list in the environment)"
    )

    # Application Settings
    app_name: str = Field(
        default="Carrier Lookup API",
        description="Application name"
    )
    app_version: str = Field(
        default="1.0.0",
        description="Application version"
    )
    debug: bool = Field(
        default=False,
        description="Debug mode flag"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    log_file: str = Field(
        default="logs/api.log",
        description="Path to log file"
    )

    class Config:
        """Pydantic config."""
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False

        # Allow extra fields from environment
        extra = "ignore"

        # Example values for documentation
        json_schema_extra = {
            "example": {
                "neo4j_uri": "bolt://localhost:7687",
                "neo4j_user": "neo4j",
                "neo4j_password": "secure_password",
                "api_key": "your_api_key_here",
                "fmcsa_api_key": "your_fmcsa_web_key",
                "import_batch_size": 10,
                "log_level": "INFO"
            }
        }


# Create a singleton instance
settings = Settings()
