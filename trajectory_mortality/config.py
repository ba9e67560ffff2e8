"""
Configuration loading for the trajectory mortality pipeline.
"""

import copy
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG: Dict[str, Any] = {
    'random_seed': 42,
    'logging': {
        'level': 'INFO'
    },
    'data': {
        'separator': '\t',
        'date_format': '%Y-%m-%d',
        'columns': {
            'patient_id': 'patient_id',
            'birth_date': 'birth_date',
            'status_date': 'status_date',
            'status': 'status',
            'admission_date': 'admission_date',
            'disease_slots': ['Disease1', 'Disease2', 'Disease3', 'Disease4']
        }
    },
    'cohort': {
        'death_code': 90,
        'max_diagnosis_age': 65,
        'follow_up_years': 5,
        'admission_policy': 'earliest'
    },
    'assembly': {
        'train_fraction': 0.7,
        'missing_trajectory_policy': 'exclude'
    },
    'model': {
        'algorithm': 'mlp',
        'mlp': {
            'hidden_layer_sizes': [16],
            'activation': 'relu',
            'solver': 'adam',
            'learning_rate_init': 0.001,
            'max_iter': 200,
            'early_stopping': False
        }
    },
    'threshold': {
        'method': 'youden_j'
    },
    'mlflow': {
        'enabled': False,
        'experiment_name': 'trajectory_mortality',
        'tracking_uri': 'file:./mlruns'
    }
}


def merge_config(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge ``override`` on top of ``base`` without mutating either."""
    merged = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def load_config(config_path: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
    """
    Load a YAML configuration and merge it over the defaults.

    Args:
        config_path: Path to a YAML file. ``None`` returns a copy of the defaults.

    Returns:
        Nested configuration dictionary
    """
    if config_path is None:
        return copy.deepcopy(DEFAULT_CONFIG)

    path = Path(config_path)
    with open(path, 'r', encoding='utf-8') as f:
        user_config = yaml.safe_load(f) or {}

    if not isinstance(user_config, dict):
        raise ValueError(f"Configuration file {path} must contain a mapping, got {type(user_config).__name__}")

    logger.info(f"Loaded configuration from {path}")
    return merge_config(DEFAULT_CONFIG, user_config)


def column_names(config: Dict[str, Any]) -> Dict[str, Any]:
    """Return the column name mapping with defaults filled in."""
    defaults = DEFAULT_CONFIG['data']['columns']
    columns = config.get('data', {}).get('columns', {})
    return {key: columns.get(key, default) for key, default in defaults.items()}
