"""Service configuration read from the environment (and an optional .env file)."""

import os
from dataclasses import dataclass, field
from typing import Any, List, Optional

from dotenv import load_dotenv

load_dotenv()

DEFAULT_MAX_UPLOAD_MB = 50


def _parse_positive_int(value: Any) -> Optional[int]:
    """Return value as positive int if possible; otherwise None."""
    if value is None:
        return None

    try:
        number = int(value)
    except (TypeError, ValueError):
        return None

    return number if number > 0 else None


def _parse_origins(value: Optional[str]) -> List[str]:
    if not value:
        return ["*"]
    origins = [origin.strip() for origin in value.split(",") if origin.strip()]
    return origins or ["*"]


@dataclass
class ServiceConfig:
    log_level: str = "INFO"
    default_fixup: str = "default"
    max_upload_mb: int = DEFAULT_MAX_UPLOAD_MB
    cors_origins: List[str] = field(default_factory=lambda: ["*"])

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_mb * 1024 * 1024

    @classmethod
    def from_env(cls) -> "ServiceConfig":
        return cls(
            log_level=os.getenv("ACROFORM_LOG_LEVEL", "INFO").upper(),
            default_fixup=os.getenv("ACROFORM_DEFAULT_FIXUP", "default").strip().lower(),
            max_upload_mb=_parse_positive_int(os.getenv("ACROFORM_MAX_UPLOAD_MB")) or DEFAULT_MAX_UPLOAD_MB,
            cors_origins=_parse_origins(os.getenv("ACROFORM_CORS_ORIGINS")),
        )


_config: Optional[ServiceConfig] = None


def get_config() -> ServiceConfig:
    """Return the cached service configuration (reading the environment once)."""
    global _config
    if _config is None:
        _config = ServiceConfig.from_env()
    return _config


def reset_config() -> None:
    global _config
    _config = None
