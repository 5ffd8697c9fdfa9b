"""
Elicit Configuration Management

Loads config.yaml over built-in defaults, then applies environment
overrides named ELICIT_<SECTION>_<KEY> (e.g. ELICIT_ENGINE_MAX_QUESTIONS_PER_SESSION=20).
"""

import copy
import logging
import os
from pathlib import Path
from typing import Optional

import yaml

from elicit.models import EngineConfig

logger = logging.getLogger(__name__)

CONFIG_PATH = Path(__file__).parent / "config.yaml"

DEFAULT_CONFIG = {
    "engine": {
        "default_target_confidence": 0.85,
        "max_questions_per_session": 100,
        "enable_adaptive_priority": True,
        "persist_questions": False,
        "raise_on_persistence_error": False,
        "templates_path": "",
        "max_follow_up_depth": 0,
        "ambiguity_penalty": 0.2,
    },
    "confidence": {
        "min_answers_for_consistency": 3,
        "critical_categories": ["requirements", "constraints", "edge-cases"],
        "weights": {
            "clarity": 0.25,
            "completeness": 0.20,
            "specificity": 0.20,
            "consistency": 0.15,
            "coverage": 0.15,
            "examples": 0.05,
        },
    },
}

_TRUE_VALUES = {"true", "1", "yes", "on"}
_FALSE_VALUES = {"false", "0", "no", "off"}


def _coerce(env_val: str, default):
    """Convert an env string to the type of the default value."""
    if isinstance(default, bool):
        lowered = env_val.strip().lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
        raise ValueError(f"not a boolean: {env_val}")
    if isinstance(default, float):
        return float(env_val)
    if isinstance(default, int):
        return int(env_val)
    if isinstance(default, list):
        return [item.strip() for item in env_val.split(",") if item.strip()]
    return env_val


def load_config(config_path: Optional[Path] = None) -> dict:
    """Load configuration from config.yaml, with env var overrides."""
    config_path = config_path or CONFIG_PATH
    config = copy.deepcopy(DEFAULT_CONFIG)

    if config_path.exists():
        try:
            with open(config_path, "r") as f:
                file_config = yaml.safe_load(f)
            if file_config:
                # Deep merge
                for section, values in file_config.items():
                    if section in config and isinstance(values, dict):
                        config[section].update(values)
                    else:
                        config[section] = values
            logger.info(f"Loaded config from {config_path}")
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Failed to load {config_path}: {e}, using defaults")

    # Env var overrides (flat keys only; nested dicts such as weights stay file-only)
    for section, values in config.items():
        if not isinstance(values, dict):
            continue
        for key, default in values.items():
            if isinstance(default, dict):
                continue
            env_key = f"ELICIT_{section.upper()}_{key.upper()}"
            env_val = os.getenv(env_key)
            if env_val:
                try:
                    config[section][key] = _coerce(env_val, default)
                    logger.info(f"Config override: {env_key}={env_val}")
                except ValueError:
                    logger.warning(f"Ignoring config override {env_key}={env_val}: wrong type")

    return config


def build_engine_config(config: Optional[dict] = None) -> EngineConfig:
    """
    Flatten the loaded config dict into an EngineConfig.

    Empty templates_path and a zero max_follow_up_depth mean "use the
    template source's own value".
    """
    config = config if config is not None else load_config()
    engine = config.get("engine", {})
    confidence = config.get("confidence", {})

    return EngineConfig(
        default_target_confidence=engine.get("default_target_confidence", 0.85),
        max_questions_per_session=engine.get("max_questions_per_session", 100),
        enable_adaptive_priority=engine.get("enable_adaptive_priority", True),
        persist_questions=engine.get("persist_questions", False),
        raise_on_persistence_error=engine.get("raise_on_persistence_error", False),
        templates_path=engine.get("templates_path") or None,
        max_follow_up_depth=engine.get("max_follow_up_depth") or None,
        ambiguity_penalty=engine.get("ambiguity_penalty", 0.2),
        min_answers_for_consistency=confidence.get("min_answers_for_consistency", 3),
        weights=confidence.get("weights") or None,
        critical_categories=confidence.get(
            "critical_categories", ["requirements", "constraints", "edge-cases"]
        ),
    )
