"""Pipeline stages from raw tables to train/test partitions."""

from .loading import RecordLoader, ParseError, parse_date_column
from .cohort import CohortBuilder, compute_age
from .trajectory_encoding import TrajectoryEncoder
from .assembly import (
    DatasetAssembler,
    PatientSplitter,
    SplitDataset,
    EmptyPartitionError,
)
from .validation import CohortValidator
from .training_pipeline import MortalityPipeline, create_model

__all__ = [
    'RecordLoader',
    'ParseError',
    'parse_date_column',
    'CohortBuilder',
    'compute_age',
    'TrajectoryEncoder',
    'DatasetAssembler',
    'PatientSplitter',
    'SplitDataset',
    'EmptyPartitionError',
    'CohortValidator',
    'MortalityPipeline',
    'create_model',
]
