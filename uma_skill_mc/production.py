"""
Production configuration management.

A production config locks every runner setting in a single JSON file so that
repeated runs are reproducible without remembering CLI flags.

Production config format:
{
    "version": "1.0",
    "source_profile": "standard",
    "runner": { /* RunnerSettings fields */ },
    "track_overrides": {
        "Ooi": { "pass_budgets": [1000] }
    }
}

Both the runner block and every track override are checked against
RunnerSettings when the file is read; unknown keys are rejected.
"""

import json
import logging
from typing import Dict, Any, Optional

from .types import RunnerSettings

logger = logging.getLogger(__name__)


PRODUCTION_CONFIG_VERSION = "1.0"

RUNNER_KEYS = frozenset(RunnerSettings.__dataclass_fields__)


def _validate_version(config: Dict[str, Any]) -> None:
    """Validate production config version."""
    version = config.get('version', '1.0')
    if version != PRODUCTION_CONFIG_VERSION:
        raise ValueError(
            f"Unsupported production config version '{version}'. "
            f"Expected '{PRODUCTION_CONFIG_VERSION}'."
        )


def _check_block(block: Any, where: str) -> Dict[str, Any]:
    if not isinstance(block, dict):
        raise ValueError(f"{where} must be a JSON object")
    unknown = sorted(set(block) - RUNNER_KEYS)
    if unknown:
        raise ValueError(f"Unknown runner setting(s) in {where}: {', '.join(unknown)}")
    return dict(block)


def _settings(runner: Dict[str, Any], where: str) -> RunnerSettings:
    try:
        return RunnerSettings.from_dict(runner)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid runner settings in {where}: {e}") from e


def validate_production_config(config: Dict[str, Any]) -> Dict[Optional[str], RunnerSettings]:
    """
    Check a production config dict.

    Returns:
        RunnerSettings for the base runner block (key None) and for each
        track override merged onto it (keyed by track name)

    Raises:
        ValueError: On an unsupported version, unknown keys or invalid values
    """
    _validate_version(config)
    runner = _check_block(config.get('runner', {}), "'runner'")
    resolved: Dict[Optional[str], RunnerSettings] = {None: _settings(runner, "'runner'")}

    overrides = config.get('track_overrides', {})
    if not isinstance(overrides, dict):
        raise ValueError("'track_overrides' must be a JSON object")
    for track_name, block in overrides.items():
        where = f"track override '{track_name}'"
        merged = dict(runner)
        merged.update(_check_block(block, where))
        resolved[track_name] = _settings(merged, where)

    return resolved


def load_production_settings(
    path: str,
    track_name: Optional[str] = None,
    seed: Optional[int] = None,
) -> RunnerSettings:
    """
    Load runner settings from a production config.

    Track override names match case-insensitively.

    Args:
        path: Path to production config JSON
        track_name: If provided, apply the matching track override
        seed: If provided, replaces the configured seed

    Raises:
        ValueError: If the config is invalid (see validate_production_config)
    """
    with open(path, 'r', encoding='utf-8') as f:
        config = json.load(f)
    resolved = validate_production_config(config)

    settings = resolved[None]
    if track_name:
        wanted = track_name.strip().lower()
        for name, track_settings in resolved.items():
            if name is not None and name.strip().lower() == wanted:
                logger.info(f"Applying production override for track '{name}'")
                settings = track_settings
                break

    if seed is not None:
        settings = RunnerSettings.from_dict({**settings.to_dict(), 'seed': seed})
    return settings


def build_production_config(
    settings: RunnerSettings,
    source_profile: Optional[str] = None,
    track_overrides: Optional[Dict[str, Dict[str, Any]]] = None,
) -> Dict[str, Any]:
    """
    Build a production config dict from resolved runner settings.

    Args:
        settings: Settings to lock in
        source_profile: Profile name or file the settings came from
        track_overrides: Optional per-track overrides keyed by track name

    Returns:
        Production config dict suitable for save_production_config()

    Raises:
        ValueError: If a track override is invalid
    """
    config: Dict[str, Any] = {
        'version': PRODUCTION_CONFIG_VERSION,
        'source_profile': source_profile,
        'runner': settings.to_dict(),
    }
    if track_overrides:
        config['track_overrides'] = {
            name: dict(block) for name, block in track_overrides.items()
        }

    validate_production_config(config)
    return config


def save_production_config(config: Dict[str, Any], path: str) -> None:
    """Save a production config dict to JSON file."""
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(config, f, indent=2, ensure_ascii=False)
    logger.info(f"Production config saved to {path}")
