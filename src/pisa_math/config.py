from dataclasses import dataclass, field
from typing import Any, Dict

import numpy as np
import yaml


@dataclass
class Config:
    """Configuration object loaded from YAML."""
    data: Dict[str, Any]
    cleaning: Dict[str, Any] = field(default_factory=dict)
    split: Dict[str, Any] = field(default_factory=dict)
    selection: Dict[str, Any] = field(default_factory=dict)
    models: Dict[str, Any] = field(default_factory=dict)
    validation: Dict[str, Any] = field(default_factory=dict)
    evaluation: Dict[str, Any] = field(default_factory=dict)
    output: Dict[str, Any] = field(default_factory=dict)
    seed: int = 42

    @classmethod
    def from_yaml(cls, path: str) -> "Config":
        with open(path, "r") as f:
            cfg = yaml.safe_load(f)
        return cls(**cfg)

    def family_config(self, family: str) -> Dict[str, Any]:
        """Settings block for one model family (empty if absent)."""
        return dict(self.models.get(family) or {})


def expand_grid(grid: Dict[str, Any] | None) -> Dict[str, list]:
    """
    Turn a YAML grid into plain lists of candidate values.

    A value is either a list or ``{"logspace": [start, stop, num]}``, which
    expands to ``numpy.logspace(start, stop, num)``.
    """
    out: Dict[str, list] = {}
    for name, values in (grid or {}).items():
        if isinstance(values, dict) and "logspace" in values:
            start, stop, num = values["logspace"]
            values = [float(v) for v in np.logspace(start, stop, int(num))]
        elif not isinstance(values, (list, tuple)):
            values = [values]
        out[name] = list(values)
    return out
