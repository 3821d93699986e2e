"""Custom exceptions for drawdownplan."""

from __future__ import annotations


class DrawdownPlanError(Exception):
    """Base exception for drawdownplan."""


class ConfigError(DrawdownPlanError):
    """Invalid configuration."""


class PlanningInvariantError(DrawdownPlanError):
    """An action plan violated an internal invariant.

    Signals a defect in the planner, not a problem with the caller's inputs.
    """
