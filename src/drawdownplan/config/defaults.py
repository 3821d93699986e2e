"""Default configuration values for drawdownplan."""

from __future__ import annotations

from typing import Any

from drawdownplan.config.schema import (
    AccountState,
    EngineConfig,
    Household,
    RiskProfile,
    TaxInputs,
)
from drawdownplan.io.yaml_loader import load_package_yaml
from drawdownplan.utils.exceptions import ConfigError

DEFAULT_PROFILE = "safety-dynamic"


def load_profiles(relative_path: str = "config/tables/profiles.yaml") -> dict[str, RiskProfile]:
    """Load the risk-profile runway tables shipped with the package."""
    data: dict[str, Any] = load_package_yaml(relative_path)
    try:
        entries: dict[str, Any] = data["profiles"]
    except (KeyError, TypeError) as exc:
        raise ConfigError(f"{relative_path} has no 'profiles' mapping") from exc
    return {name: RiskProfile(name=name, **entry) for name, entry in entries.items()}


def default_config() -> EngineConfig:
    """Default engine constants with the packaged risk profiles."""
    return EngineConfig(profiles=load_profiles())


def get_profile(config: EngineConfig, name: str) -> RiskProfile:
    """Look up a risk profile by name.

    Raises:
        ConfigError: If the profile is not configured.
    """
    try:
        return config.profiles[name]
    except KeyError:
        known = ", ".join(sorted(config.profiles)) or "none"
        raise ConfigError(f"Unknown risk profile {name!r} (configured: {known})") from None


def default_household() -> Household:
    """Example household: two equity lots, a gold sleeve and two years of cash."""
    return Household(
        accounts=AccountState(
            equity_old_value=200_000,
            equity_old_cost=80_000,
            equity_old_exempt=0.0,
            equity_new_value=275_000,
            equity_new_cost=220_000,
            equity_new_exempt=0.3,
            gold_active=True,
            gold_value=25_000,
            gold_cost=20_000,
            gold_target_pct=5.0,
            rebalancing_band_pct=35.0,
            gold_tax_exempt=True,
            overnight_cash=40_000,
            money_market=20_000,
        ),
        taxes=TaxInputs(church_tax_rate=0.0, annual_allowance=1_000),
        risk_profile=DEFAULT_PROFILE,
    )
