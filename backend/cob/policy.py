"""Tunable limits for COB determination and record lifecycle."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml

from .errors import ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CobPolicy:
    """Numeric limits used by the rules and the coordinator.

    These tune thresholds only. Which rules run, and in what order, is fixed.
    """

    min_coverages: int = 1
    max_coverages: int = 10
    esrd_coordination_months: int = 30
    medicare_age: int = 65
    verification_stale_days: int = 90
    summary_history_limit: int = 10

    def coverage_count_ok(self, count: int) -> bool:
        return self.min_coverages <= count <= self.max_coverages

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CobPolicy:
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValidationError(
                f"Unknown COB policy setting(s): {', '.join(unknown)}",
                errors=[{"field": name, "error": "unknown setting"} for name in unknown],
            )
        try:
            return cls(**{name: int(value) for name, value in data.items()})
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Invalid COB policy value: {e}") from e


def load_policy(path: str | Path | None) -> CobPolicy:
    """Load policy overrides from a YAML or JSON file.

    Returns the default policy when ``path`` is empty.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValidationError: If the file holds unknown keys or non-integer values
    """
    if not path:
        return CobPolicy()

    file_path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(f"Policy file not found: {file_path}")

    suffix = file_path.suffix.lower()
    with open(file_path) as f:
        if suffix in (".yaml", ".yml"):
            data = yaml.safe_load(f)
        elif suffix == ".json":
            data = json.load(f)
        else:
            raise ValueError(f"Unsupported policy format: {suffix}")

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValidationError(f"Policy file must contain a mapping: {file_path}")

    policy = CobPolicy.from_dict(data)
    logger.info(f"Loaded COB policy overrides from {file_path.name}")
    return policy
