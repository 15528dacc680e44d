"""
Threshold configuration shared by the classifier and the learning engine.

All scoring weights and gating thresholds live in one frozen structure so a
threshold change is made in a single place. Values can be overridden from a
YAML file (see ``load_config``).
"""

from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict

import yaml

from .exceptions import ConfigError


@dataclass(frozen=True)
class ClassifierConfig:
    """Scoring weights and learning thresholds."""

    # Field weights
    title_weight: float = 25.0
    labels_weight: float = 15.0
    description_weight: float = 3.0
    context_bonus: float = 12.0

    # Keyword tier multipliers
    core_multiplier: float = 2.0
    support_multiplier: float = 1.0
    title_keyword_multiplier: float = 3.0

    # Decision flags
    ambiguity_threshold: float = 5.0
    low_confidence_threshold: float = 40.0
    high_confidence_threshold: float = 70.0
    hybrid_min_score: float = 20.0
    hybrid_strong_score: float = 40.0
    leadership_confidence: int = 95

    # Emerging terms
    emerging_min_length: int = 4
    emerging_min_count: int = 2
    emerging_max_terms: int = 5
    batch_emerging_threshold: int = 3
    batch_emerging_max_terms: int = 20
    review_emerging_terms: int = 2

    # Learning gates
    min_supporting_jobs: int = 3
    min_suggestion_confidence: float = 0.70
    auto_apply_confidence: float = 0.80
    core_specificity: float = 0.95
    core_min_support: int = 8
    support_saturation: int = 6
    max_candidates: int = 10

    # Positive reinforcement
    initial_pattern_weight: float = 0.6
    reinforcement_step: float = 0.1

    recent_actions: int = 5

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


DEFAULT_CONFIG = ClassifierConfig()


def config_from_dict(data: Dict[str, Any]) -> ClassifierConfig:
    """
    Build a config from a mapping, starting from the defaults.

    Args:
        data: Mapping of field name to value

    Returns:
        ClassifierConfig with the overrides applied

    Raises:
        ConfigError: If a key is unknown or a value is out of range
    """
    known = {f.name: f for f in fields(ClassifierConfig)}
    overrides = {}

    for key, value in data.items():
        if key not in known:
            raise ConfigError(f"Unknown configuration key: {key}")
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ConfigError(f"Configuration value for '{key}' must be a number")
        if known[key].type in (int, "int"):
            if value != int(value):
                raise ConfigError(f"Configuration value for '{key}' must be an integer")
            value = int(value)
        else:
            value = float(value)
        if value < 0:
            raise ConfigError(f"Configuration value for '{key}' must not be negative")
        overrides[key] = value

    config = replace(DEFAULT_CONFIG, **overrides)
    validate_config(config)
    return config


def validate_config(config: ClassifierConfig) -> None:
    """
    Check cross-field constraints.

    Raises:
        ConfigError: If thresholds are inconsistent
    """
    if not 0.0 <= config.min_suggestion_confidence <= config.auto_apply_confidence <= 1.0:
        raise ConfigError(
            "Expected 0 <= min_suggestion_confidence <= auto_apply_confidence <= 1"
        )
    if not 0.0 <= config.core_specificity <= 1.0:
        raise ConfigError("core_specificity must be within [0, 1]")
    if config.min_supporting_jobs < 1:
        raise ConfigError("min_supporting_jobs must be at least 1")
    if config.support_saturation < 1:
        raise ConfigError("support_saturation must be at least 1")
    if not 0.0 <= config.initial_pattern_weight <= 1.0:
        raise ConfigError("initial_pattern_weight must be within [0, 1]")
    if config.leadership_confidence > 100:
        raise ConfigError("leadership_confidence must not exceed 100")


def load_config(path: str) -> ClassifierConfig:
    """
    Load classifier configuration from a YAML file.

    The file may hold the keys at top level or under a ``classifier`` key.

    Args:
        path: Path to the YAML file

    Returns:
        ClassifierConfig

    Raises:
        ConfigError: If the file is missing, malformed or invalid
    """
    config_path = Path(path)

    if not config_path.exists():
        raise ConfigError(f"Configuration file not found: {path}")

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse configuration {path}: {e}") from e

    if not data:
        return DEFAULT_CONFIG

    if not isinstance(data, dict):
        raise ConfigError(f"Configuration file must contain a mapping: {path}")

    if "classifier" in data:
        data = data["classifier"] or {}
        if not isinstance(data, dict):
            raise ConfigError("'classifier' must be a mapping")

    return config_from_dict(data)
