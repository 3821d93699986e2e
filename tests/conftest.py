"""Shared test fixtures."""

from __future__ import annotations

import pytest

from drawdownplan.config.defaults import default_config, default_household
from drawdownplan.config.schema import EngineConfig, Household, MarketObservation


@pytest.fixture
def config() -> EngineConfig:
    """Default engine constants with the packaged profiles."""
    return default_config()


@pytest.fixture
def household() -> Household:
    """Example household (500k portfolio, 60k cash)."""
    return default_household()


@pytest.fixture
def bear_observation() -> MarketObservation:
    """25% below the high, lower than a year ago, no bounce."""
    return MarketObservation(
        ath=1000,
        year_end=750,
        year_end_1=800,
        year_end_2=900,
        year_end_3=1000,
        years_since_ath=2,
        inflation=2.0,
    )


@pytest.fixture
def peak_observation() -> MarketObservation:
    """New high with moderate momentum."""
    return MarketObservation(
        ath=1000,
        year_end=1000,
        year_end_1=950,
        year_end_2=900,
        year_end_3=850,
        years_since_ath=0,
        inflation=2.0,
    )
