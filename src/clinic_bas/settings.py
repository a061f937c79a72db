from __future__ import annotations

import logging
from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Any, List, Mapping, Optional

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from clinic_bas.models import CAPITAL_PURCHASES, BasCategoryConfig, ExpenseEntityConfig

logger = logging.getLogger(__name__)

DEFAULTS_PATH = Path(__file__).parent / "data" / "bas_defaults.yaml"


class InvalidConfigurationError(ValueError):
    """Raised when a shipped or supplied configuration file is malformed."""


class Settings(BaseSettings):
    """Runtime settings for the HTTP service, read from ``CLINIC_BAS_*`` variables."""

    model_config = SettingsConfigDict(env_prefix="CLINIC_BAS_", env_file=".env", extra="ignore")

    default_gst_percent: float = Field(default=10.0, description="GST rate offered to new arrangements")
    financial_year_start: str = Field(default="July", description="July or any other value for calendar years")
    log_level: str = Field(default="INFO", description="DEBUG, INFO, WARNING or ERROR")
    export_dir: str = Field(default="exports", description="Where generated workbooks are written")
    cors_origins: str = Field(default="*", description="Comma-separated list of allowed origins")

    @property
    def cors_origins_list(self) -> List[str]:
        if not self.cors_origins or self.cors_origins.strip() == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache()
def get_settings() -> Settings:
    return Settings()


def _load_yaml(path: Path) -> dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        loaded = yaml.safe_load(handle)

    if not isinstance(loaded, dict):
        raise InvalidConfigurationError(f"BAS defaults file must contain a mapping at root: {path}")
    return loaded


@lru_cache(maxsize=8)
def _cached_defaults(path: Path) -> BasCategoryConfig:
    config = BasCategoryConfig.from_record(_load_yaml(path))
    logger.debug("Loaded %d default income categories from %s", len(config.income_categories), path)
    return config


def load_default_bas_config(path: Optional[Path | str] = None) -> BasCategoryConfig:
    """Return the shipped default BAS category configuration.

    Expense entities are clinic-specific, so the defaults carry none; use
    ``default_expense_entity_config`` to derive an entry for each entity.
    """
    return _cached_defaults(Path(path) if path is not None else DEFAULTS_PATH)


def default_expense_entity_config(entity: Mapping[str, Any]) -> ExpenseEntityConfig:
    """Default BAS configuration for an expense entity the clinic has defined."""
    entity_type = str(entity.get("type") or "")
    return ExpenseEntityConfig(
        entity_id=str(entity.get("id") or ""),
        enabled=True,
        bas_code="G10" if entity_type == CAPITAL_PURCHASES else "G11",
        business_use=Decimal("100"),
        name=str(entity.get("name") or ""),
        type=entity_type,
        head_id=entity.get("headId"),
    )


__all__ = [
    "InvalidConfigurationError",
    "Settings",
    "default_expense_entity_config",
    "get_settings",
    "load_default_bas_config",
]
