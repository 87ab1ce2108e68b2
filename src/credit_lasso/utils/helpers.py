"""Utility functions for the German Credit lasso analysis."""

import logging
import random
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import numpy as np
import yaml
from omegaconf import DictConfig, OmegaConf

logger = logging.getLogger(__name__)

DEFAULT_CONFIG: Dict[str, Any] = {
    'data': {
        'path': 'data/credit.csv',
        'synthetic': False,
        'n_samples': 1000,
        'random_state': 42,
        'test_fraction': 0.5,
    },
    'model': {
        'n_lambda': 100,
        'lambda_min_ratio': 0.01,
        'n_folds': 5,
        'standardize': True,
        'criterion': 'min',
        'holdout_criterion': 'aicc',
    },
    'evaluation': {
        'cutoffs': [0.2, 0.5],
    },
    'output': {
        'dir': 'outputs',
        'save_figures': True,
    },
}


def load_config(
    config_path: Optional[Union[str, Path]] = None,
    overrides: Optional[List[str]] = None
) -> DictConfig:
    """Load configuration from a YAML file on top of the defaults.

    Args:
        config_path: Path to configuration file (defaults only when None)
        overrides: Dotted ``key=value`` overrides, e.g. ``model.n_folds=10``

    Returns:
        Merged configuration
    """
    config = OmegaConf.create(DEFAULT_CONFIG)

    if config_path is not None:
        with open(config_path, 'r') as f:
            file_config = yaml.safe_load(f) or {}
        config = OmegaConf.merge(config, file_config)
        logger.info(f"Loaded configuration from {config_path}")

    if overrides:
        config = OmegaConf.merge(config, OmegaConf.from_dotlist(list(overrides)))

    return config


def set_deterministic_seeds(seed: int = 42) -> None:
    """Set deterministic seeds for the global random number generators.

    Args:
        seed: Random seed value
    """
    np.random.seed(seed)
    random.seed(seed)
    logger.info(f"Set deterministic seeds to {seed}")


def safe_divide(numerator: float, denominator: float, default: float = 0.0) -> float:
    """Safely divide two numbers, returning default if denominator is zero.

    Args:
        numerator: Numerator
        denominator: Denominator
        default: Default value if division by zero

    Returns:
        Division result or default value
    """
    if denominator == 0:
        return default
    return numerator / denominator


def format_percentage(value: float, decimals: int = 2) -> str:
    """Format value as percentage string.

    Args:
        value: Value to format (0-1 range)
        decimals: Number of decimal places

    Returns:
        Formatted percentage string
    """
    return f"{value * 100:.{decimals}f}%"
