from __future__ import annotations

import os
from dataclasses import dataclass

from storekit.errors import InvalidConfiguration
from storekit.logging_config import parse_bool

DEFAULT_REGION = "us-east-1"


def _parse_float(var_name: str, default: float) -> float:
    raw = os.getenv(var_name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise InvalidConfiguration(f"{var_name} must be a number, got: {raw!r}") from exc


@dataclass(frozen=True)
class ObjectStoreConfig:
    endpoint: str
    access_key: str
    secret_key: str
    use_ssl: bool = False
    bucket_name: str = ""
    region: str = ""
    connect_timeout: float = 10.0
    read_timeout: float = 60.0
    max_pool_connections: int = 10

    def __post_init__(self):
        missing = [
            name
            for name in ("endpoint", "access_key", "secret_key")
            if not getattr(self, name) or not getattr(self, name).strip()
        ]
        if missing:
            raise InvalidConfiguration(
                f"ObjectStoreConfig requires non-empty values for: {', '.join(missing)}."
            )
        if self.connect_timeout <= 0 or self.read_timeout <= 0:
            raise InvalidConfiguration("ObjectStoreConfig timeouts must be > 0.")
        if self.max_pool_connections <= 0:
            raise InvalidConfiguration("ObjectStoreConfig.max_pool_connections must be > 0.")

    @property
    def resolved_region(self) -> str:
        return self.region.strip() or DEFAULT_REGION

    @property
    def endpoint_url(self) -> str:
        endpoint = self.endpoint.strip().rstrip("/")
        if "://" in endpoint:
            return endpoint
        scheme = "https" if self.use_ssl else "http"
        return f"{scheme}://{endpoint}"

    @classmethod
    def from_environment(cls) -> "ObjectStoreConfig":
        max_pool_raw = os.getenv("STOREKIT_S3_MAX_POOL_CONNECTIONS", "10")
        try:
            max_pool_connections = int(max_pool_raw)
        except ValueError as exc:
            raise InvalidConfiguration(
                f"STOREKIT_S3_MAX_POOL_CONNECTIONS must be an integer, got: {max_pool_raw!r}"
            ) from exc
        return cls(
            endpoint=os.getenv("STOREKIT_S3_ENDPOINT", ""),
            access_key=os.getenv("STOREKIT_S3_ACCESS_KEY", ""),
            secret_key=os.getenv("STOREKIT_S3_SECRET_KEY", ""),
            use_ssl=parse_bool(os.getenv("STOREKIT_S3_USE_SSL"), default=False),
            bucket_name=os.getenv("STOREKIT_S3_BUCKET", ""),
            region=os.getenv("STOREKIT_S3_REGION") or os.getenv("AWS_REGION") or os.getenv("AWS_DEFAULT_REGION") or "",
            connect_timeout=_parse_float("STOREKIT_S3_CONNECT_TIMEOUT", 10.0),
            read_timeout=_parse_float("STOREKIT_S3_READ_TIMEOUT", 60.0),
            max_pool_connections=max_pool_connections,
        )
