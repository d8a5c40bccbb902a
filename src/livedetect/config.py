from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml

from livedetect.errors import ConfigError

DEFAULT_MODEL_PATHS = {
    "mediapipe": "models/mediapipe/efficientdet_lite0.tflite",
    "yolo": "yolo11n.pt",
}


@dataclass(frozen=True)
class DetectorConfig:
    score_threshold: float = 0.5
    max_results: int = 3
    thread_count: int = 2
    acceleration_requested: bool = True
    backend: str = "mediapipe"
    model_path: str = DEFAULT_MODEL_PATHS["mediapipe"]

    def __post_init__(self) -> None:
        if not 0.0 < self.score_threshold <= 1.0:
            raise ConfigError(f"score_threshold must be in (0, 1], got {self.score_threshold}")
        if self.max_results <= 0:
            raise ConfigError(f"max_results must be > 0, got {self.max_results}")
        if self.thread_count <= 0:
            raise ConfigError(f"thread_count must be > 0, got {self.thread_count}")
        if not self.model_path:
            raise ConfigError("model_path must not be empty")

    @classmethod
    def from_mapping(cls, mapping: dict | None, backend: str, **overrides: Any) -> "DetectorConfig":
        """Build a config from a YAML section; ``None`` overrides are ignored."""
        cfg = dict(mapping or {})
        cfg.update({k: v for k, v in overrides.items() if v is not None})

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(cfg) - known)
        if unknown:
            raise ConfigError(f"Unknown detector option(s) for '{backend}': {', '.join(unknown)}")

        key = backend.lower()
        return cls(
            score_threshold=float(_typed(cfg, "score_threshold", 0.5, (int, float), backend)),
            max_results=_typed(cfg, "max_results", 3, int, backend),
            thread_count=_typed(cfg, "thread_count", 2, int, backend),
            acceleration_requested=_typed(cfg, "acceleration_requested", True, bool, backend),
            backend=key,
            model_path=_typed(cfg, "model_path", DEFAULT_MODEL_PATHS.get(key, ""), str, backend),
        )


def _typed(cfg: dict, name: str, default: Any, expected: type | tuple[type, ...], backend: str) -> Any:
    value = cfg.get(name, default)
    # bool is an int subclass; only accept it where a bool is expected.
    if isinstance(value, bool) and expected is not bool:
        value_ok = False
    else:
        value_ok = isinstance(value, expected)
    if not value_ok:
        raise ConfigError(f"Invalid detector option for '{backend}': {name}={value!r}")
    return value


def load_detector_config(config_path: Path, backend: str) -> dict:
    if not config_path.exists():
        return {}

    with config_path.open("r", encoding="utf-8") as f:
        doc = yaml.safe_load(f) or {}

    detectors = doc.get("detectors", {}) or {}
    section = detectors.get(backend.lower(), {}) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"Section detectors.{backend} in {config_path} must be a mapping")
    return section
