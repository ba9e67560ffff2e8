"""
Trajectory Mortality Pipeline

Prepares a labelled feature table from patient, admission and disease
trajectory records and trains a small feed-forward classifier that predicts
5-year mortality.
"""

__version__ = "1.0.0"

from .config import DEFAULT_CONFIG, load_config
from .data_generation import TrajectoryDataGenerator
from .pipeline import (
    RecordLoader,
    ParseError,
    CohortBuilder,
    TrajectoryEncoder,
    DatasetAssembler,
    PatientSplitter,
    EmptyPartitionError,
    MortalityPipeline,
)
from .utils import (
    ExperimentTracker,
    ThresholdOptimizer,
    ModelEvaluator
)

__all__ = [
    'DEFAULT_CONFIG',
    'load_config',
    'TrajectoryDataGenerator',
    'RecordLoader',
    'ParseError',
    'CohortBuilder',
    'TrajectoryEncoder',
    'DatasetAssembler',
    'PatientSplitter',
    'EmptyPartitionError',
    'MortalityPipeline',
    'ExperimentTracker',
    'ThresholdOptimizer',
    'ModelEvaluator'
]
