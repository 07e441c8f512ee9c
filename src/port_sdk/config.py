"""Client configuration."""

import json
import pathlib

import pydantic

from .errors import ValidationError

DEFAULT_REGION = "eu"

DEFAULT_RETRY_ATTEMPTS = 3

DEFAULT_MAX_RESPONSE_BYTES = 10 << 20

DEFAULT_TIMEOUT = 30.0


class ClientConfig(pydantic.BaseModel):
    """Configuration for the Port API client.

    Exactly one auth mode is active: a static ``api_token`` takes precedence
    over the ``client_id``/``client_secret`` pair.
    """

    region: str = pydantic.Field(
        DEFAULT_REGION,
        description="API region (eu, us, ...), used when base_url is unset",
    )
    base_url: str | None = pydantic.Field(
        None,
        description="Explicit API base URL overriding the region",
    )
    api_token: pydantic.SecretStr | None = pydantic.Field(
        None,
        description="Static bearer token",
    )
    client_id: str | None = pydantic.Field(
        None,
        description="Client id for the client-credentials flow",
    )
    client_secret: pydantic.SecretStr | None = pydantic.Field(
        None,
        description="Client secret for the client-credentials flow",
    )
    user_agent: str | None = pydantic.Field(None, description="Custom User-Agent")
    retry_attempts: int = pydantic.Field(
        DEFAULT_RETRY_ATTEMPTS,
        description="Attempts per API call, at least 1",
    )
    max_response_bytes: int = pydantic.Field(
        DEFAULT_MAX_RESPONSE_BYTES,
        description="Largest decoded response body; 0 or negative is unlimited",
    )
    timeout: float = pydantic.Field(
        DEFAULT_TIMEOUT,
        description="Request timeout in seconds",
        gt=0,
    )
    verbose: bool = pydantic.Field(False, description="Enable diagnostic request logs")
    verbose_file: str | None = pydantic.Field(
        None,
        description="File receiving diagnostic logs (stdout when unset)",
    )
    log_level: str = pydantic.Field("INFO", description="Logging level")

    @pydantic.field_validator("client_id", "base_url", "region", mode="before")
    @classmethod
    def _strip(cls, value):
        return value.strip() if isinstance(value, str) else value

    @pydantic.field_validator("api_token", "client_secret", mode="before")
    @classmethod
    def _strip_secret(cls, value):
        if isinstance(value, str):
            return value.strip() or None
        return value

    @pydantic.field_validator("retry_attempts")
    @classmethod
    def _at_least_one(cls, value: int) -> int:
        return max(1, value)

    @property
    def uses_static_token(self) -> bool:
        return bool(self.api_token and self.api_token.get_secret_value())

    def validate_credentials(self) -> None:
        """Check that an auth mode is configured.

        Raises:
            ValidationError: If neither a token nor a complete client id and
                secret pair is set.
        """
        if self.uses_static_token:
            return
        secret = self.client_secret.get_secret_value() if self.client_secret else ""
        if not self.client_id or not secret:
            msg = "set api_token or client_id/client_secret"
            raise ValidationError(msg)

    def base_endpoint(self) -> str:
        """Resolve the API base URL from the override or the region."""
        if self.base_url:
            return self.base_url.rstrip("/")
        region = self.region.lower()
        if region in {"", "eu"}:
            return "https://api.port.io"
        if region == "us":
            return "https://api.us.port.io"
        return f"https://api.{region}.port.io"


def load_config(config_path: str | pathlib.Path) -> ClientConfig:
    """Load and validate configuration from a JSON file.

    Raises:
        FileNotFoundError: If the file does not exist.
        pydantic.ValidationError: If a field has the wrong type.
        ValidationError: If no usable credentials are configured.
    """
    path = pathlib.Path(config_path)
    if not path.exists():
        msg = f"Configuration file not found: {config_path}"
        raise FileNotFoundError(msg)

    with path.open("r") as f:
        data = json.load(f)

    config = ClientConfig(**data)
    config.validate_credentials()
    return config
