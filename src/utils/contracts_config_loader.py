"""
Contracts configuration loader (links, token/number policy, template defaults).
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)


class VirtualTermsDefaults(BaseModel):
    event_platform: str = "Zoom/Teams/Platform TBD"
    event_timezone: str = "PST"
    presentation_duration: str = "60 minutes"
    recording_usage: str = "internal purposes only"
    recording_permission: str = "Granted for internal use"
    recording_distribution: str = "Internal only"
    recording_usage_period: str = "1 year"
    governing_law: str = "California, USA"


class TravelTermsDefaults(BaseModel):
    flight_class: str = "Economy/Business as agreed"
    booking_responsibility: str = "Client to book and pay directly"
    hotel_dates: str = "Night before and night of event"
    airport_transfers: str = "Provided by Client"
    local_transportation: str = "Provided by Client"
    travel_stipend_coverage: str = "Meals and incidentals"


class TemplateDefaults(BaseModel):
    payment_terms: str = "Payment due within 30 days of event completion"
    additional_terms: str = "No additional terms specified"
    event_type: str = "Speaking Engagement"
    unknown_value: str = "TBD"
    not_applicable: str = "N/A"
    virtual: VirtualTermsDefaults = Field(default_factory=VirtualTermsDefaults)
    travel: TravelTermsDefaults = Field(default_factory=TravelTermsDefaults)


class ContractsConfig(BaseModel):
    public_base_url: str = "http://localhost:3000"
    company_name: str = "Speak About AI"
    default_currency: str = "USD"
    token_length: int = Field(default=40, ge=32, le=128)
    expiry_days: int = Field(default=90, ge=1, le=3650)
    number_retry_limit: int = Field(default=3, ge=1, le=10)
    templates: TemplateDefaults = Field(default_factory=TemplateDefaults)

    def signing_link(self, token: str) -> str:
        return f"{self.public_base_url.rstrip('/')}/contracts/sign/{token}"

    def view_link(self, token: str) -> str:
        return f"{self.public_base_url.rstrip('/')}/contracts/view/{token}"


def load_contracts_config(config_path: Optional[Path] = None) -> ContractsConfig:
    """
    Load and validate the contracts configuration.

    Args:
        config_path: Path to a YAML file. Defaults to $CONTRACTS_CONFIG_PATH,
            then config/contracts_config.yml at the repository root.

    Returns:
        Validated ContractsConfig. Built-in defaults are used when no file exists.

    Raises:
        ValidationError: If the file doesn't match the schema
    """
    if config_path is None:
        env_path = os.getenv("CONTRACTS_CONFIG_PATH")
        if env_path:
            config_path = Path(env_path)
        else:
            config_path = Path(__file__).parent.parent.parent / "config" / "contracts_config.yml"

    if not config_path.exists():
        logger.warning("Contracts config not found at %s; using defaults", config_path)
        return ContractsConfig()

    with open(config_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    try:
        cfg = ContractsConfig(**data)
        logger.info("Successfully loaded contracts config from %s", config_path)
        return cfg
    except ValidationError as e:
        logger.error("Contracts config validation failed: %s", e)
        raise
