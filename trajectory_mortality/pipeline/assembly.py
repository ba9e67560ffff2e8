"""
Dataset assembly: merge trajectory features with the outcome label and split
patients into disjoint train/test partitions.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)


class EmptyPartitionError(ValueError):
    """Raised when a train/test split would leave one of the partitions empty."""


class DatasetAssembler:
    """Join encoded trajectory features with the cohort outcome."""

    MISSING_TRAJECTORY_POLICIES = ('exclude', 'zero_fill')

    def __init__(self,
                 patient_col: str = 'patient_id',
                 label_col: str = 'outcome',
                 missing_trajectory_policy: str = 'exclude'):
        """
        Initialize assembler.

        Args:
            patient_col: Patient identifier column
            label_col: Outcome column carried over from the cohort
            missing_trajectory_policy: What to do with cohort patients that have no
                trajectory rows: 'exclude' drops them, 'zero_fill' keeps them with
                an all-zero feature row
        """
        if missing_trajectory_policy not in self.MISSING_TRAJECTORY_POLICIES:
            raise ValueError(f"Unknown missing trajectory policy: {missing_trajectory_policy}")

        self.patient_col = patient_col
        self.label_col = label_col
        self.missing_trajectory_policy = missing_trajectory_policy

    def assemble(self, features: pd.DataFrame, cohort: pd.DataFrame) -> pd.DataFrame:
        """
        Build the labelled feature table.

        Args:
            features: Trajectory indicator table indexed by patient identifier
            cohort: Cohort table with patient identifier and outcome

        Returns:
            DataFrame with the patient identifier, one column per trajectory and the label
        """
        start_time = time.time()
        logger.info(f"Assembling dataset (missing trajectory policy: {self.missing_trajectory_policy})")

        feature_cols = list(features.columns)
        labels = cohort[[self.patient_col, self.label_col]].drop_duplicates(subset=[self.patient_col])
        feature_frame = features.rename_axis(self.patient_col).reset_index()

        if self.missing_trajectory_policy == 'zero_fill':
            dataset = labels.merge(feature_frame, on=self.patient_col, how='left')
            no_trajectory = int((~labels[self.patient_col].isin(feature_frame[self.patient_col])).sum())
            if feature_cols:
                dataset[feature_cols] = dataset[feature_cols].fillna(0).astype(int)
            logger.info(f"Zero-filled {no_trajectory} cohort patients without trajectories")
        else:
            dataset = feature_frame.merge(labels, on=self.patient_col, how='inner')
            dropped = len(labels) - len(dataset)
            logger.info(f"Dropped {dropped} cohort patients without trajectories")

        dataset = dataset[[self.patient_col] + feature_cols + [self.label_col]].copy()
        dataset[self.label_col] = dataset[self.label_col].astype(int)
        dataset = dataset.reset_index(drop=True)

        elapsed_time = time.time() - start_time
        logger.info(f"Assembled dataset: {dataset.shape} in {elapsed_time:.2f} seconds")
        return dataset


@dataclass
class SplitDataset:
    """Train/test partitions with the patient identifier removed."""
    train: pd.DataFrame
    test: pd.DataFrame
    train_ids: np.ndarray
    test_ids: np.ndarray
    feature_columns: List[str] = field(default_factory=list)
    label_column: str = 'outcome'

    @property
    def X_train(self) -> pd.DataFrame:
        return self.train[self.feature_columns]

    @property
    def y_train(self) -> pd.Series:
        return self.train[self.label_column]

    @property
    def X_test(self) -> pd.DataFrame:
        return self.test[self.feature_columns]

    @property
    def y_test(self) -> pd.Series:
        return self.test[self.label_column]


@dataclass
class PatientSplitter:
    """Random train/test split over patient identifiers, not rows.

    The random source is explicit: pass either ``rng`` (a numpy Generator) or
    ``seed``, not both. With neither, a fresh unseeded generator is used.
    """
    train_fraction: float = 0.7
    seed: Optional[int] = None
    rng: Optional[np.random.Generator] = None
    patient_col: str = "patient_id"
    label_col: str = "outcome"

    def __post_init__(self):
        if not 0.0 < self.train_fraction < 1.0:
            raise ValueError(f"train_fraction must be between 0 and 1, got {self.train_fraction}")
        if self.rng is not None and self.seed is not None:
            raise ValueError("Pass either seed or rng to PatientSplitter, not both")
        if self.rng is None:
            self.rng = np.random.default_rng(self.seed)

    def split_ids(self, patient_ids) -> Tuple[np.ndarray, np.ndarray]:
        ids = np.asarray(pd.unique(pd.Series(patient_ids)))
        n_train = int(round(self.train_fraction * len(ids)))

        if n_train == 0 or n_train == len(ids):
            raise EmptyPartitionError(
                f"Splitting {len(ids)} patients at train_fraction={self.train_fraction} "
                f"leaves an empty {'train' if n_train == 0 else 'test'} partition"
            )

        train_ids = self.rng.choice(ids, size=n_train, replace=False)
        test_ids = ids[~np.isin(ids, train_ids)]
        return train_ids, test_ids

    def split(self, dataset: pd.DataFrame) -> SplitDataset:
        """Split an assembled dataset into train and test partitions."""
        train_ids, test_ids = self.split_ids(dataset[self.patient_col])

        in_train = dataset[self.patient_col].isin(train_ids)
        train = dataset[in_train].drop(columns=[self.patient_col]).reset_index(drop=True)
        test = dataset[~in_train].drop(columns=[self.patient_col]).reset_index(drop=True)
        feature_columns = [c for c in dataset.columns if c not in (self.patient_col, self.label_col)]

        logger.info(f"Split {len(train_ids) + len(test_ids)} patients into "
                    f"{len(train_ids)} train / {len(test_ids)} test")
        if len(train):
            logger.info(f"Train prevalence: {train[self.label_col].mean():.3f}")
        if len(test):
            logger.info(f"Test prevalence: {test[self.label_col].mean():.3f}")

        return SplitDataset(
            train=train,
            test=test,
            train_ids=np.asarray(train_ids),
            test_ids=np.asarray(test_ids),
            feature_columns=feature_columns,
            label_column=self.label_col,
        )
