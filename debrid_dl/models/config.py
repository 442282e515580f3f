"""
Pydantic model for application configuration.
Provides robust validation for all settings.
"""

from pydantic import BaseModel, Field, field_validator

DEFAULT_API_BASE_URL = "https://api.real-debrid.com/rest/1.0/"


class ServerConfig(BaseModel):
    """A validated configuration model for the application."""

    # Server
    server_name: str = "debrid-dl"
    host: str = "0.0.0.0"
    port: int = 8080
    ping_interval: float = 30.0
    progress_interval: float = 1.0

    # Debrid API
    api_base_url: str = DEFAULT_API_BASE_URL
    api_token: str
    request_timeout: float = 30.0

    # Jobs & Files
    max_errors: int = 50
    chunk_size: int = 131072  # 128 KB
    post_process_command: str = ""
    default_save_dir: str = ""

    # Internal fields not loaded from INI file
    config_path: str = Field("", repr=False)

    class Config:
        """Pydantic model configuration."""

        validate_assignment = True
        str_strip_whitespace = True

    @field_validator("api_token")
    @classmethod
    def validate_token(cls, v: str) -> str:
        if not v:
            raise ValueError("API token is required. Run 'debrid-dl init' first.")
        return v

    @field_validator("api_base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Ensures the base URL is absolute and ends with a slash."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("API base URL must start with http:// or https://.")
        return v if v.endswith("/") else v + "/"

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        if v < 1 or v > 65535:
            raise ValueError("Port must be between 1 and 65535.")
        return v

    @field_validator("ping_interval", "progress_interval", "request_timeout")
    @classmethod
    def validate_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Intervals and timeouts must be greater than zero.")
        return v

    @field_validator("max_errors")
    @classmethod
    def validate_max_errors(cls, v: int) -> int:
        """Keeps the error ring within a sane size."""
        if v < 1 or v > 1000:
            raise ValueError("max_errors must be between 1 and 1000.")
        return v

    @field_validator("chunk_size")
    @classmethod
    def validate_chunk_size(cls, v: int) -> int:
        if v < 1024:
            raise ValueError("chunk_size must be at least 1024 bytes.")
        return v

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that are expected in the INI file."""
        internal_fields = {"config_path"}
        return {key for key in cls.model_fields if key not in internal_fields}
