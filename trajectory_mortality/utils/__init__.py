"""Utility modules for the ML pipeline."""

from .experiment_tracking import ExperimentTracker
from .model_utils import ThresholdOptimizer, ModelEvaluator

__all__ = [
    'ExperimentTracker',
    'ThresholdOptimizer',
    'ModelEvaluator',
]
