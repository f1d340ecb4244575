"""Immutable limiter configuration."""

from __future__ import annotations

import math
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from rolling_limiter.core.config import LimiterSettings
from rolling_limiter.core.errors import InvalidConfigurationError

DEFAULT_NAMESPACE = "rate-limiter-"


class RateLimiterConfig(BaseModel):
    """Validated parameters shared by every check of one limiter.

    Instances are frozen and safe to share between threads. Build them with
    :meth:`create` (or :meth:`from_settings`) so invalid values fail with
    ``InvalidConfigurationError`` at construction time.
    """

    model_config = ConfigDict(frozen=True, strict=True, extra="forbid")

    namespace: str = Field(
        DEFAULT_NAMESPACE,
        description="Prefix prepended to the identity to form the store key.",
    )
    interval_millis: int = Field(
        ..., gt=0, description="Window length in milliseconds."
    )
    max_in_interval: int = Field(
        ..., gt=0, description="Inclusive ceiling of admitted actions per window."
    )
    min_difference_millis: int | None = Field(
        default=None,
        ge=0,
        description="Minimum spacing between consecutive actions; None disables it.",
    )
    store_blocked: bool = Field(
        default=True,
        description="Record rejected attempts too, giving an atomic upper bound.",
    )

    @classmethod
    def create(cls, **options: Any) -> "RateLimiterConfig":
        """Build a configuration, converting validation failures.

        Raises:
            InvalidConfigurationError: If any option is missing, unknown or
                out of range.
        """
        try:
            return cls(**options)
        except ValidationError as exc:
            fields = sorted({".".join(str(part) for part in err["loc"]) for err in exc.errors()})
            raise InvalidConfigurationError(
                code="invalid_rate_limiter_config",
                message=f"Invalid rate limiter configuration: {', '.join(fields)}",
                details={"fields": fields},
            ) from exc

    @classmethod
    def from_settings(cls, limiter_settings: LimiterSettings) -> "RateLimiterConfig":
        return cls.create(
            namespace=limiter_settings.namespace,
            interval_millis=limiter_settings.interval_millis,
            max_in_interval=limiter_settings.max_in_interval,
            min_difference_millis=limiter_settings.min_difference_millis,
            store_blocked=limiter_settings.store_blocked,
        )

    @property
    def interval_micros(self) -> int:
        return self.interval_millis * 1000

    @property
    def min_difference_micros(self) -> int | None:
        if self.min_difference_millis is None:
            return None
        return self.min_difference_millis * 1000

    @property
    def expiry_seconds(self) -> int:
        """Idle time after which the store drops a window record."""
        return math.ceil(self.interval_millis / 1000)

    def key_for(self, identity: str) -> str:
        return f"{self.namespace}{identity}"
