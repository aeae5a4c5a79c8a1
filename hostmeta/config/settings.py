"""
Process-wide configuration for hostmeta.

Settings are read from the environment exactly once, at startup, and frozen.
Every component that needs a value receives the Settings instance (usually
through ``app.state.settings``) instead of reading the environment itself.
"""

import os
from typing import Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


DEFAULT_VERSION = "1.0.0"
DEFAULT_METADATA_HOST = "metadata.google.internal"


class Settings(BaseModel):
    """Immutable runtime configuration for one hostmeta process."""

    model_config = ConfigDict(frozen=True)

    role: Literal["backend", "frontend"] = "backend"
    listen_port: int = Field(default=8080, ge=1, le=65535)
    backend_service_url: str = "http://localhost:8080"
    request_timeout: float = Field(default=2.0, gt=0)
    metadata_timeout: float = Field(default=1.0, gt=0)
    metadata_host: str = DEFAULT_METADATA_HOST
    version: str = DEFAULT_VERSION
    env: Literal["dev", "prod"] = "dev"

    @field_validator("backend_service_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        value = value.strip()
        if not value.startswith(("http://", "https://")):
            raise ValueError("backend_service_url must be an http(s) URL")
        return value.rstrip("/")


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build Settings from environment variables.

    Only variables that are set are passed through, so unset ones fall back
    to the model defaults. Raises pydantic.ValidationError on bad values.
    """
    if environ is None:
        environ = os.environ

    mapping = {
        "role": "HOSTMETA_ROLE",
        "backend_service_url": "HOSTMETA_BACKEND_URL",
        "request_timeout": "HOSTMETA_REQUEST_TIMEOUT",
        "metadata_timeout": "HOSTMETA_METADATA_TIMEOUT",
        "metadata_host": "GCE_METADATA_HOST",
        "version": "HOSTMETA_VERSION",
        "env": "HOSTMETA_ENV",
    }

    values = {}
    for field_name, env_name in mapping.items():
        raw = environ.get(env_name)
        if raw:
            values[field_name] = raw.strip()

    # PORT is what most container platforms inject
    port = environ.get("HOSTMETA_PORT") or environ.get("PORT")
    if port:
        values["listen_port"] = port.strip()

    if "role" in values:
        values["role"] = values["role"].lower()
    if "env" in values:
        values["env"] = values["env"].lower()

    return Settings(**values)


settings = load_settings()
