from dataclasses import dataclass, field
from typing import Any, Dict
import yaml


@dataclass
class Config:
    """Configuration object loaded from YAML."""
    data: Dict[str, Any]
    preprocessing: Dict[str, Any] = field(default_factory=dict)
    model: Dict[str, Any] = field(default_factory=dict)
    validation: Dict[str, Any] = field(default_factory=dict)
    output: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_yaml(cls, path: str) -> "Config":
        with open(path, "r") as f:
            cfg = yaml.safe_load(f)
        return cls.from_dict(cfg)

    @classmethod
    def from_dict(cls, cfg: Dict[str, Any]) -> "Config":
        if not isinstance(cfg, dict) or "data" not in cfg:
            raise ValueError("Configuration must be a mapping with a 'data' section")
        unknown = set(cfg) - {"data", "preprocessing", "model", "validation", "output"}
        if unknown:
            raise ValueError(f"Unknown configuration sections: {sorted(unknown)}")
        # empty YAML sections load as None
        return cls(**{k: (v or {}) for k, v in cfg.items()})
