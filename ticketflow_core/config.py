"""
TOML-based configuration for TicketFlow.

Loads settings from a TOML file and/or environment variables.
Environment variables take precedence over file values.

Usage:
    from ticketflow_core.config import load_config
    cfg = load_config("ticketflow.toml")
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ticketflow_core import registry

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib  # type: ignore[import,no-redef]


@dataclass
class RegistryConfig:
    """Global policy applied when creating collections."""
    max_tickets_per_event: int = registry.MAX_TICKETS_PER_EVENT
    min_ticket_price: int = registry.MIN_TICKET_PRICE
    global_max_resale_percent: int = registry.GLOBAL_MAX_RESALE_PERCENT
    max_organizer_fee_percent: int = registry.MAX_ORGANIZER_FEE_PERCENT

    def to_policy(self) -> registry.RegistryPolicy:
        return registry.RegistryPolicy(
            max_tickets_per_event=self.max_tickets_per_event,
            min_ticket_price=self.min_ticket_price,
            global_max_resale_percent=self.global_max_resale_percent,
            max_organizer_fee_percent=self.max_organizer_fee_percent,
        )


@dataclass
class StorageConfig:
    """Persistence settings."""
    enabled: bool = False
    backend: str = "sqlite"
    path: str = "data/ticketflow.db"


@dataclass
class LoggingConfig:
    """Logging settings."""
    level: str = "INFO"
    format: str = "human"   # "human" or "json"
    file: str | None = None


@dataclass
class TicketFlowConfig:
    """Top-level configuration container."""
    registry: RegistryConfig = field(default_factory=RegistryConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _merge(dc: Any, raw: dict[str, Any]) -> None:
    """Merge a raw dict into a dataclass instance (in-place)."""
    for key, value in raw.items():
        key_under = key.replace("-", "_")
        if hasattr(dc, key_under):
            setattr(dc, key_under, value)


def load_config(path: str | None = None) -> TicketFlowConfig:
    """
    Load configuration from a TOML file, then overlay environment variables.

    Env-var mapping:
        TICKETFLOW_LOG_LEVEL          -> logging.level
        TICKETFLOW_LOG_FMT            -> logging.format
        TICKETFLOW_DB_PATH            -> storage.path (enables storage)
        TICKETFLOW_MAX_TICKETS        -> registry.max_tickets_per_event
        TICKETFLOW_MIN_PRICE          -> registry.min_ticket_price
        TICKETFLOW_MAX_RESALE_PERCENT -> registry.global_max_resale_percent
        TICKETFLOW_MAX_FEE_PERCENT    -> registry.max_organizer_fee_percent
    """
    cfg = TicketFlowConfig()

    # ── TOML file ────────────────────────────────────────────────
    if path is not None:
        p = Path(path)
        if p.exists():
            with open(p, "rb") as f:
                data = tomllib.load(f)
            for section_name, section_dc in [
                ("registry", cfg.registry),
                ("storage", cfg.storage),
                ("logging", cfg.logging),
            ]:
                if section_name in data:
                    _merge(section_dc, data[section_name])

    # ── Environment variable overrides ───────────────────────────
    if v := os.environ.get("TICKETFLOW_LOG_LEVEL"):
        cfg.logging.level = v.upper()
    if v := os.environ.get("TICKETFLOW_LOG_FMT"):
        cfg.logging.format = v
    if v := os.environ.get("TICKETFLOW_DB_PATH"):
        cfg.storage.path = v
        cfg.storage.enabled = True
    if v := os.environ.get("TICKETFLOW_MAX_TICKETS"):
        cfg.registry.max_tickets_per_event = int(v)
    if v := os.environ.get("TICKETFLOW_MIN_PRICE"):
        cfg.registry.min_ticket_price = int(v)
    if v := os.environ.get("TICKETFLOW_MAX_RESALE_PERCENT"):
        cfg.registry.global_max_resale_percent = int(v)
    if v := os.environ.get("TICKETFLOW_MAX_FEE_PERCENT"):
        cfg.registry.max_organizer_fee_percent = int(v)

    return cfg
