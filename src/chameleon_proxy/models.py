from enum import Enum

from fastapi import Request
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ProxyMode(str, Enum):
    RECORD = "record"
    REPLAY = "replay"
    PASSTHROUGH = "passthrough"


def normalize_backend_url(backend: str) -> str:
    """Add an http:// scheme to backend URLs given without one (e.g. localhost:8080)"""
    backend = backend.strip()
    if not backend:
        return backend
    if backend.startswith("http://") or backend.startswith("https://"):
        return backend
    return "http://" + backend


class Config(BaseSettings):
    """
    Configuration for the proxy

    Values are read from environment variables (named by the field aliases) and
    validated once at startup.
    """

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    mode: ProxyMode = Field(default=ProxyMode.RECORD, alias="MODE")
    backend_url: str = Field(default="http://localhost:8080", alias="BACKEND_URL")
    port: int = Field(default=3000, alias="PORT", ge=1, le=65535)
    storage_path: str = Field(default="./recordings", alias="STORAGE_PATH")
    recording_format: str = Field(default="json", alias="RECORDING_FORMAT", pattern="^(json|yaml)$")
    backend_timeout: float = Field(default=30, alias="BACKEND_TIMEOUT", gt=0)
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    @field_validator("mode", mode="before")
    @classmethod
    def _lower_mode(cls, value):
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("backend_url")
    @classmethod
    def _validate_backend_url(cls, value: str) -> str:
        value = normalize_backend_url(value)
        if not value:
            raise ValueError("BACKEND_URL cannot be empty")
        return value

    @field_validator("storage_path")
    @classmethod
    def _validate_storage_path(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("STORAGE_PATH cannot be empty")
        return value


class RequestContext:
    _config: Config
    _request: Request
    _body: bytes

    def __init__(self, config: Config, request: Request, body: bytes):
        self._config = config
        self._request = request
        self._body = body

    @property
    def config(self) -> Config:
        return self._config

    @property
    def request(self) -> Request:
        return self._request

    @property
    def body(self) -> bytes:
        return self._body

    @property
    def raw_path(self) -> str:
        # the undecoded path as sent by the client, used when forwarding
        raw_path = self._request.scope.get("raw_path")
        if raw_path:
            return raw_path.decode("latin-1")
        return self._request.url.path

    @property
    def query(self) -> str:
        return self._request.scope.get("query_string", b"").decode("latin-1")
