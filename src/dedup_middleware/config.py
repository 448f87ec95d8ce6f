"""Configuration module for the deduplication middleware.

This module provides the DedupConfig class, which controls which requests are
deduplicated, how store keys are laid out, how long locks and cached
responses live, and which outcomes may be replayed.

Example:
    Basic usage with defaults:

        >>> config = DedupConfig()
        >>> config.lock_ttl_seconds, config.cache_ttl_seconds
        (60, 86400)
        >>> config.lock_namespace
        'Idempotency-Key'

    Custom configuration:

        >>> config = DedupConfig(
        ...     enabled_methods=["POST"],
        ...     lock_ttl_seconds=30,
        ...     cacheable_statuses=[200, 201, 202],
        ...     store_backend="redis",
        ...     redis_url="redis://cache:6379/1",
        ... )

    Loading from environment:

        >>> import os
        >>> os.environ["DEDUP_STORE_BACKEND"] = "redis"
        >>> os.environ["DEDUP_CACHEABLE_STATUSES"] = "200,201"
        >>> config = DedupConfig.from_env()
"""

import os
from typing import Any, Literal
from urllib.parse import quote

from pydantic import BaseModel, Field, field_validator

# Valid HTTP methods for deduplication
VALID_HTTP_METHODS = {
    "GET",
    "HEAD",
    "POST",
    "PUT",
    "DELETE",
    "CONNECT",
    "OPTIONS",
    "TRACE",
    "PATCH",
}


def build_redis_url(
    address: str,
    username: str | None = None,
    password: str | None = None,
    db: int | str = 0,
) -> str:
    """Assemble a Redis URL from a host:port address and optional credentials.

    Example:
        >>> build_redis_url("cache:6379", password="s3cr@t", db=2)
        'redis://:s3cr%40t@cache:6379/2'
    """
    credentials = ""
    if username or password:
        credentials = f"{quote(username or '', safe='')}:{quote(password or '', safe='')}@"
    return f"redis://{credentials}{address}/{int(db)}"


class DedupConfig(BaseModel):
    """Configuration for the deduplication middleware.

    Attributes:
        enabled_methods: HTTP methods the protocol applies to. Requests with
            other methods pass straight through. Default: POST, PUT, PATCH, DELETE.
        header_name: Request header carrying the idempotency token.
        retry_header_name: Response header marking replays.
        namespace: Prefix for store keys. Defaults to ``header_name``.
        lock_ttl_seconds: Safety window for a held lock (1-3600). Bounds how
            long a crashed owner can block its token. Default 60.
        cache_ttl_seconds: Retention of cached responses (1-604800). Should
            outlive client retry windows. Default 86400 (24 hours).
        cacheable_statuses: Status codes meaning "fully completed". Only
            these responses are stored and replayed. Default [200, 201].
        atomic_lock_acquire: Send increment and expire as one transaction.
            When False the two are separate round trips and a crash between
            them leaves a lock without expiry.
        verify_fingerprint: Refuse to replay a cached response to a request
            whose fingerprint differs from the original.
        fingerprint_headers: Request headers included in the fingerprint.
        max_token_length: Longest accepted token (1-1024). Default 255.
        store_backend: "memory" (single process) or "redis".
        redis_url: Connection URL used when store_backend is "redis".

    Note:
        Instances are immutable. Build a new one to change settings.
    """

    enabled_methods: list[str] | str = Field(
        default=["POST", "PUT", "PATCH", "DELETE"],
        description="HTTP methods that go through the deduplication protocol",
    )
    header_name: str = Field(
        default="Idempotency-Key",
        min_length=1,
        description="Request header carrying the idempotency token",
    )
    retry_header_name: str = Field(
        default="Idempotency-Retry",
        min_length=1,
        description="Response header marking replayed responses",
    )
    namespace: str | None = Field(
        default=None,
        min_length=1,
        description="Store key prefix; defaults to header_name",
    )
    lock_ttl_seconds: int = Field(
        default=60,
        description="Lock safety window in seconds (1-3600)",
    )
    cache_ttl_seconds: int = Field(
        default=86400,
        description="Cached response retention in seconds (1-604800)",
    )
    cacheable_statuses: list[int] | str = Field(
        default=[200, 201],
        description="Status codes whose responses are cached and replayed",
    )
    atomic_lock_acquire: bool = Field(
        default=True,
        description="Increment and expire the lock in a single transaction",
    )
    verify_fingerprint: bool = Field(
        default=True,
        description="Reject replays for requests that differ from the original",
    )
    fingerprint_headers: list[str] | str = Field(
        default=["content-type"],
        description="Request headers included in the request fingerprint",
    )
    max_token_length: int = Field(
        default=255,
        description="Maximum accepted token length (1-1024)",
    )
    store_backend: Literal["memory", "redis"] = Field(
        default="memory",
        description="Coordination store backend",
    )
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Connection URL for the Redis store",
    )

    model_config = {"frozen": True}

    @property
    def lock_namespace(self) -> str:
        """Prefix shared by the lock and cache keys."""
        return self.namespace or self.header_name

    @field_validator("enabled_methods", mode="before")
    @classmethod
    def validate_enabled_methods(cls, v: Any) -> list[str]:
        """Validate and uppercase HTTP methods.

        Raises:
            ValueError: If any method is not a known HTTP method.

        Example:
            >>> DedupConfig(enabled_methods="post, put").enabled_methods
            ['POST', 'PUT']
        """
        if isinstance(v, str):
            v = [method.strip() for method in v.split(",") if method.strip()]

        if not isinstance(v, list):
            raise ValueError("enabled_methods must be a list or comma-separated string")

        methods = [method.upper() for method in v]

        invalid_methods = set(methods) - VALID_HTTP_METHODS
        if invalid_methods:
            raise ValueError(
                f"Invalid HTTP methods: {', '.join(sorted(invalid_methods))}. "
                f"Valid methods are: {', '.join(sorted(VALID_HTTP_METHODS))}"
            )

        return methods

    @field_validator("lock_ttl_seconds")
    @classmethod
    def validate_lock_ttl_seconds(cls, v: int) -> int:
        if not (1 <= v <= 3600):
            raise ValueError(f"lock_ttl_seconds must be between 1 and 3600 (1 hour), got {v}")
        return v

    @field_validator("cache_ttl_seconds")
    @classmethod
    def validate_cache_ttl_seconds(cls, v: int) -> int:
        if not (1 <= v <= 604800):
            raise ValueError(f"cache_ttl_seconds must be between 1 and 604800 (7 days), got {v}")
        return v

    @field_validator("cacheable_statuses", mode="before")
    @classmethod
    def validate_cacheable_statuses(cls, v: Any) -> list[int]:
        """Parse and range-check cacheable status codes.

        Raises:
            ValueError: If a code is not an integer in 100-599.

        Example:
            >>> DedupConfig(cacheable_statuses="200, 201,202").cacheable_statuses
            [200, 201, 202]
        """
        if isinstance(v, str):
            try:
                v = [int(code) for code in v.split(",") if code.strip()]
            except ValueError as e:
                raise ValueError(f"cacheable_statuses must be integers: {e}") from e

        if not isinstance(v, list) or not all(
            isinstance(code, int) and not isinstance(code, bool) for code in v
        ):
            raise ValueError("cacheable_statuses must be a list of integers")

        out_of_range = [code for code in v if not (100 <= code <= 599)]
        if out_of_range:
            raise ValueError(f"cacheable_statuses must be between 100 and 599, got {out_of_range}")

        return v

    @field_validator("fingerprint_headers", mode="before")
    @classmethod
    def validate_fingerprint_headers(cls, v: Any) -> list[str]:
        if isinstance(v, str):
            v = [header.strip() for header in v.split(",") if header.strip()]

        if not isinstance(v, list):
            raise ValueError("fingerprint_headers must be a list or comma-separated string")

        return [header.lower() for header in v]

    @field_validator("max_token_length")
    @classmethod
    def validate_max_token_length(cls, v: int) -> int:
        if not (1 <= v <= 1024):
            raise ValueError(f"max_token_length must be between 1 and 1024, got {v}")
        return v

    @classmethod
    def from_env(cls, prefix: str = "DEDUP_") -> "DedupConfig":
        """Create configuration from environment variables.

        Each field is read from ``<prefix><FIELD_NAME>``; list fields accept
        comma-separated values and booleans accept true/false/1/0/yes/no.
        Missing variables keep their defaults. Without ``<prefix>REDIS_URL``,
        the URL is built from ``REDIS_ADDRESS``, ``REDIS_USERNAME``,
        ``REDIS_PASSWORD`` and ``REDIS_DB`` (same prefix) when an address is set.

        Example:
            >>> import os
            >>> os.environ["DEDUP_LOCK_TTL_SECONDS"] = "30"
            >>> DedupConfig.from_env().lock_ttl_seconds
            30
        """
        config_dict: dict[str, Any] = {}

        field_types = {
            "enabled_methods": list,
            "header_name": str,
            "retry_header_name": str,
            "namespace": str,
            "lock_ttl_seconds": int,
            "cache_ttl_seconds": int,
            "cacheable_statuses": list,
            "atomic_lock_acquire": bool,
            "verify_fingerprint": bool,
            "fingerprint_headers": list,
            "max_token_length": int,
            "store_backend": str,
            "redis_url": str,
        }

        for field_name, field_type in field_types.items():
            env_value = os.environ.get(f"{prefix}{field_name.upper()}")
            if env_value is None:
                continue

            if field_type is int:
                config_dict[field_name] = int(env_value)
            elif field_type is bool:
                config_dict[field_name] = env_value.strip().lower() in {"1", "true", "yes", "on"}
            else:
                # Lists stay as comma-separated strings for the validators
                config_dict[field_name] = env_value

        # Split connection settings, used when no URL is given
        address = os.environ.get(f"{prefix}REDIS_ADDRESS")
        if "redis_url" not in config_dict and address:
            config_dict["redis_url"] = build_redis_url(
                address,
                username=os.environ.get(f"{prefix}REDIS_USERNAME"),
                password=os.environ.get(f"{prefix}REDIS_PASSWORD"),
                db=os.environ.get(f"{prefix}REDIS_DB") or 0,
            )

        return cls(**config_dict)

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> "DedupConfig":
        """Create configuration from a dictionary.

        Raises:
            ValidationError: If the dictionary contains invalid values.
        """
        return cls(**config_dict)
