"""
Application Settings
===================

Main application settings and environment configuration using Pydantic Settings.
Supports development, testing, and production environments.
"""

from typing import Annotated, Optional, List, Union, Literal
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict
import json


class Settings(BaseSettings):
    """Main application settings with environment variable support."""

    # Application Configuration
    app_name: str = Field(default="MCP SSE Server", description="Application name")
    environment: str = Field(
        default="development", description="Environment: development, testing, production"
    )
    debug: bool = Field(default=False, description="Debug mode")

    # Server Configuration
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port")

    # MCP Server Identity
    server_name: str = Field(default="mcp-sse-server", description="MCP server name")
    server_version: str = Field(default="1.0.0", description="MCP server version")
    server_description: str = Field(
        default="MCP SSE Server", description="Human readable server description"
    )
    protocol_version: str = Field(default="2024-11-05", description="MCP protocol version")

    # SSE Configuration
    keep_alive_interval: float = Field(
        default=30.0, gt=0, description="Seconds between keep-alive pings on an SSE stream"
    )
    sse_event_buffer_size: int = Field(
        default=100, ge=1, description="Frames buffered per SSE stream before writes fail"
    )
    max_sessions: int = Field(
        default=0, ge=0, description="Maximum open SSE sessions (0 means unlimited)"
    )

    # Tool Execution
    tool_call_timeout: Optional[float] = Field(
        default=None, gt=0, description="Per tool call timeout in seconds (unset means none)"
    )

    # Security Configuration
    allowed_origins: Annotated[List[str], NoDecode] = Field(
        default=["*"], description="Allowed origins for CORS"
    )
    require_api_key: bool = Field(default=True, description="Require an API key on MCP endpoints")
    api_key: Optional[str] = Field(default=None, description="API key clients must present")
    api_key_header: Literal["X-API-Key", "Authorization"] = Field(
        default="X-API-Key", description="Header carrying the API key"
    )

    # Monitoring Configuration
    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment value."""
        allowed = {"development", "testing", "production"}
        if v not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed:
            raise ValueError(f"Log level must be one of: {allowed}")
        return v.upper()

    @field_validator("allowed_origins", mode="before")
    @classmethod
    def parse_allowed_origins(cls, v: Union[str, List[str]]) -> List[str]:
        """Parse allowed origins from string or list."""
        if isinstance(v, str):
            # Handle JSON-like string: ["*"] or ["https://a", "https://b"]
            v = v.strip()
            if v.startswith("[") and v.endswith("]"):
                try:
                    return json.loads(v)
                except json.JSONDecodeError:
                    pass
            # Handle comma-separated string: "*" or "https://a,https://b"
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, env_prefix="MCP_SSE_"
    )


# Global settings instance - will be initialized when needed
settings = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global settings
    if settings is None:
        settings = Settings()
    return settings


def reload_settings() -> Settings:
    """Reload settings from environment."""
    global settings
    settings = Settings()
    return settings
