"""
Configuration Schema for the Survey Simulator
==============================================

This module defines the configuration format for the data generating
process (DGP). It provides:
1. Schema definition with validation
2. Default values (the reference DGP)
3. Loading from JSON

Configuration Structure:
------------------------
{
    "population": {
        "N": int,              # Number of respondents
        "seed": int            # Random seed for reproducibility
    },
    "covariates": {
        "promo": {"values": list},                 # Fair draw over values
        "num_child": {"values": list, "probs": list},
        "distance": {"log_mean": float, "log_sd": float}
    },
    "halo": {"mean": float, "sd": float},          # Shared latent factor
    "items": {
        "<item>": {            # Satisfaction sub-score, drawn in key order
            "mean": float,     # Mean of the item-specific noise
            "sd": float,       # SD of the item-specific noise
            "offset": float    # Constant added before flooring
        }
    },
    "overall": {
        "weights": {"<column>": float},   # Linear weights (items, halo, distance)
        "promo_effect": float,            # Added when promo == "yes"
        "child_threshold": int,           # Bump applies when num_child > this
        "child_effect": float,
        "noise_sd": float,
        "offset": float
    }
}

Author: Survey Analytics Team
"""

import copy
import json
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Any, List, Optional

from survey_regression.constants import (
    SEED_DEFAULT,
    N_RESPONDENTS_DEFAULT,
    PROMO_LEVELS,
    NUM_CHILD_VALUES,
    NUM_CHILD_PROBS,
    CHILD_THRESHOLD,
    validate_probabilities,
)


# =============================================================================
# DEFAULT CONFIGURATION
# =============================================================================

DEFAULT_CONFIG: Dict[str, Any] = {
    'population': {
        'N': N_RESPONDENTS_DEFAULT,
        'seed': SEED_DEFAULT,
    },
    'covariates': {
        'promo': {'values': list(PROMO_LEVELS)},
        'num_child': {'values': list(NUM_CHILD_VALUES), 'probs': list(NUM_CHILD_PROBS)},
        'distance': {'log_mean': 3.0, 'log_sd': 1.0},
    },
    'halo': {'mean': 0.0, 'sd': 5.0},
    'items': {
        'clean': {'mean': 80.0, 'sd': 3.0, 'offset': 1.0},
        'aroma': {'mean': 70.0, 'sd': 7.0, 'offset': 5.0},
        'value': {'mean': 65.0, 'sd': 10.0, 'offset': 9.0},
        'color': {'mean': 85.0, 'sd': 2.0, 'offset': 1.0},
    },
    'overall': {
        'weights': {
            'halo': 1.0,
            'clean': 0.5,
            'aroma': 0.1,
            'value': 0.3,
            'color': 0.2,
            'distance': 0.03,
        },
        'promo_effect': 3.0,
        'child_threshold': CHILD_THRESHOLD,
        'child_effect': 5.0,
        'noise_sd': 7.0,
        'offset': -54.0,
    },
}

REQUIRED_SECTIONS = ['population', 'covariates', 'halo', 'items', 'overall']


# =============================================================================
# SCHEMA VALIDATION
# =============================================================================

@dataclass
class ValidationResult:
    """Result of configuration validation."""
    is_valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def validate_config(config: Dict) -> ValidationResult:
    """
    Validate configuration against schema.

    Args:
        config: Configuration dictionary

    Returns:
        ValidationResult with validity status and any errors/warnings
    """
    errors = []
    warnings_list = []

    for key in REQUIRED_SECTIONS:
        if key not in config:
            errors.append(f"Missing required key: {key}")

    if errors:
        return ValidationResult(False, errors, warnings_list)

    # Population
    pop = config['population']
    if 'N' not in pop:
        errors.append("population.N is required")
    elif int(pop['N']) < 2:
        errors.append(f"population.N must be at least 2, got {pop['N']}")
    if 'seed' not in pop:
        warnings_list.append(f"population.seed not specified, using default {SEED_DEFAULT}")

    # Covariates
    cov = config['covariates']
    for name in ('promo', 'num_child', 'distance'):
        if name not in cov:
            errors.append(f"covariates.{name} is required")

    num_child = cov.get('num_child', {})
    values = num_child.get('values', [])
    probs = num_child.get('probs', [])
    if len(values) != len(probs):
        errors.append("covariates.num_child: probs count must match values count")
    elif probs and not validate_probabilities(probs):
        errors.append(f"covariates.num_child.probs must be non-negative and sum to 1, got {probs}")

    if float(cov.get('distance', {}).get('log_sd', 1.0)) < 0:
        errors.append("covariates.distance.log_sd must be non-negative")

    # Halo
    halo_sd = float(config['halo'].get('sd', 0.0))
    if halo_sd < 0:
        errors.append("halo.sd must be non-negative")
    elif halo_sd == 0:
        warnings_list.append("halo.sd is 0: items will not share a halo effect")

    # Items
    items = config['items']
    if not items:
        errors.append("items must define at least one satisfaction sub-score")
    for item_name, spec in items.items():
        for key in ('mean', 'sd'):
            if key not in spec:
                errors.append(f"items.{item_name}.{key} is required")
        if float(spec.get('sd', 0.0)) < 0:
            errors.append(f"items.{item_name}.sd must be non-negative")

    # Overall
    overall = config['overall']
    known = set(items) | {'halo', 'distance'}
    for col in overall.get('weights', {}):
        if col not in known:
            errors.append(f"overall.weights references unknown column '{col}'")
    if float(overall.get('noise_sd', 0.0)) < 0:
        errors.append("overall.noise_sd must be non-negative")

    return ValidationResult(
        is_valid=len(errors) == 0,
        errors=errors,
        warnings=warnings_list
    )


# =============================================================================
# CONFIG LOADING
# =============================================================================

def apply_defaults(config: Dict) -> Dict:
    """
    Apply default values to configuration.

    Missing sections are taken from DEFAULT_CONFIG; missing keys inside
    present sections are filled in one level deep.

    Args:
        config: Raw configuration dictionary

    Returns:
        New configuration dictionary with defaults applied
    """
    merged = copy.deepcopy(config)
    for section, default in DEFAULT_CONFIG.items():
        if section not in merged:
            merged[section] = copy.deepcopy(default)
        elif isinstance(default, dict) and section != 'items':
            for key, value in default.items():
                merged[section].setdefault(key, copy.deepcopy(value))

    for item_spec in merged['items'].values():
        item_spec.setdefault('offset', 0.0)

    return merged


def check_config(config: Dict) -> Dict:
    """
    Validate a configuration, emit warnings and apply defaults.

    Raises:
        ValueError: If configuration is invalid
    """
    result = validate_config(config)

    if result.warnings:
        for w in result.warnings:
            warnings.warn(w, UserWarning)

    if not result.is_valid:
        raise ValueError("Invalid configuration:\n" + "\n".join(result.errors))

    return apply_defaults(config)


def load_config(config_path: Optional[Path] = None) -> Dict:
    """
    Load and validate configuration from JSON file.

    Args:
        config_path: Path to config JSON; None returns the default config

    Returns:
        Validated configuration dictionary

    Raises:
        ValueError: If configuration is invalid
    """
    if config_path is None:
        return copy.deepcopy(DEFAULT_CONFIG)

    with open(config_path, encoding='utf-8') as f:
        config = json.load(f)

    return check_config(config)


def make_config(seed: Optional[int] = None, n: Optional[int] = None,
                base: Optional[Dict] = None) -> Dict:
    """
    Build a configuration from a base with seed/N overrides.

    Args:
        seed: Random seed override
        n: Respondent count override
        base: Base configuration (default: DEFAULT_CONFIG)

    Returns:
        Validated configuration dictionary
    """
    config = copy.deepcopy(base if base is not None else DEFAULT_CONFIG)
    if seed is not None:
        config['population']['seed'] = int(seed)
    if n is not None:
        config['population']['N'] = int(n)
    return check_config(config)


def save_config(config: Dict, path: Path) -> Path:
    """Write a configuration to JSON."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(config, f, indent=2)
    return path
