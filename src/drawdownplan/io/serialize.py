"""Serialization for configs, controller state, inputs and results."""

from __future__ import annotations

import hashlib
import json
import math
from dataclasses import fields, is_dataclass
from typing import Any

from pydantic import BaseModel, TypeAdapter

from drawdownplan.config.schema import EngineConfig, PeriodInputs
from drawdownplan.core.state import ControllerState

_PERIODS_ADAPTER = TypeAdapter(list[PeriodInputs])
_STATE_ADAPTER = TypeAdapter(ControllerState)


def to_jsonable(obj: Any) -> Any:
    """Convert results (dataclasses, pydantic models, tuples) to JSON-ready data.

    Non-finite floats become ``None`` so the output is strict JSON.
    """
    if isinstance(obj, BaseModel):
        return obj.model_dump(mode="json")
    if is_dataclass(obj) and not isinstance(obj, type):
        return {f.name: to_jsonable(getattr(obj, f.name)) for f in fields(obj)}
    if isinstance(obj, dict):
        return {str(k): to_jsonable(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [to_jsonable(v) for v in obj]
    if isinstance(obj, float) and not math.isfinite(obj):
        return None
    if hasattr(obj, "tolist"):
        return to_jsonable(obj.tolist())
    return obj


def compute_config_hash(config: EngineConfig) -> str:
    """Compute a deterministic SHA-256 hash of the engine config.

    Uses canonical JSON (sorted keys, no whitespace) so the same
    logical config always produces the same hash.
    """
    canonical = json.dumps(config.model_dump(mode="json"), sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode()).hexdigest()


def dump_config(config: EngineConfig) -> str:
    """Serialize the engine config to a JSON string."""
    return json.dumps(config.model_dump(mode="json"), indent=2)


def load_config(json_str: str) -> EngineConfig:
    """Deserialize an engine config from a JSON string."""
    return EngineConfig.model_validate_json(json_str)


def dump_state(state: ControllerState) -> str:
    """Serialize controller state to a JSON string."""
    return json.dumps(to_jsonable(state), indent=2)


def load_state(json_str: str) -> ControllerState:
    """Deserialize controller state from a JSON string.

    Unknown keys are ignored so states written by newer versions still load.
    Values are validated strictly: a quoted number is rejected, not coerced.

    Raises:
        pydantic.ValidationError: On a wrong type or a flex rate outside 0-100.
    """
    return _STATE_ADAPTER.validate_json(json_str, strict=True)


def load_period_inputs(json_str: str) -> PeriodInputs:
    """Deserialize one period's inputs from a JSON string."""
    return PeriodInputs.model_validate_json(json_str)


def load_periods(json_str: str) -> list[PeriodInputs]:
    """Deserialize a JSON array of period inputs."""
    return _PERIODS_ADAPTER.validate_json(json_str)


def dump_result(result: Any) -> str:
    """Serialize any engine result (period, spending, action, sale) to JSON."""
    return json.dumps(to_jsonable(result), indent=2)
