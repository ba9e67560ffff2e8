"""
Trajectory encoding

Deduplicates disease trajectories into a catalog of stable identifiers and
turns each patient's trajectory history into a wide binary indicator table.
"""

import logging
import time
from typing import List, Optional

import pandas as pd
from sklearn.base import BaseEstimator, TransformerMixin
from sklearn.exceptions import NotFittedError

logger = logging.getLogger(__name__)

TRAJECTORY_ID = 'trajectory_id'


class TrajectoryEncoder(BaseEstimator, TransformerMixin):
    """One-hot encode trajectory membership per patient."""

    def __init__(self,
                 patient_col: str = 'patient_id',
                 disease_slots: Optional[List[str]] = None,
                 id_prefix: str = 'T'):
        """
        Initialize trajectory encoder.

        Args:
            patient_col: Patient identifier column
            disease_slots: Ordered disease-code columns that make up a trajectory
            id_prefix: Prefix of the synthetic trajectory identifiers
        """
        self.patient_col = patient_col
        self.disease_slots = disease_slots
        self.id_prefix = id_prefix

    @property
    def slots(self) -> List[str]:
        return list(self.disease_slots or ['Disease1', 'Disease2', 'Disease3', 'Disease4'])

    def _check_fitted(self):
        if not hasattr(self, 'catalog_'):
            raise NotFittedError("TrajectoryEncoder is not fitted yet; call fit() first")

    def fit(self, X: pd.DataFrame, y=None):
        """Build the catalog of unique trajectories from the full trajectory table."""
        start_time = time.time()
        logger.info("Fitting trajectory encoder...")

        missing = [col for col in self.slots if col not in X.columns]
        if missing:
            raise ValueError(f"Trajectory table is missing disease columns: {missing}")

        # First-occurrence order keeps identifiers deterministic for a given input
        catalog = X[self.slots].drop_duplicates().reset_index(drop=True)
        catalog[TRAJECTORY_ID] = [f'{self.id_prefix}{i + 1}' for i in range(len(catalog))]

        self.catalog_ = catalog
        self.trajectory_ids_ = catalog[TRAJECTORY_ID].tolist()

        elapsed_time = time.time() - start_time
        logger.info(f"Found {len(self.trajectory_ids_)} unique trajectories in {len(X)} rows "
                    f"in {elapsed_time:.2f} seconds")
        return self

    def assign_ids(self, X: pd.DataFrame) -> pd.DataFrame:
        """Attach the trajectory identifier to every row by exact match on all disease slots."""
        self._check_fitted()
        labelled = X.merge(self.catalog_, on=self.slots, how='left')

        unknown = labelled[TRAJECTORY_ID].isna().sum()
        if unknown:
            logger.warning(f"{unknown} trajectory rows do not match any catalog entry and are dropped")
            labelled = labelled.dropna(subset=[TRAJECTORY_ID])

        return labelled

    def transform(self, X: pd.DataFrame) -> pd.DataFrame:
        """
        Pivot trajectory rows into a patient x trajectory indicator table.

        Returns:
            DataFrame indexed by patient identifier with one 0/1 column per
            catalog trajectory, in catalog order
        """
        start_time = time.time()
        logger.info("Encoding trajectories...")

        labelled = self.assign_ids(X)
        pairs = labelled[[self.patient_col, TRAJECTORY_ID]].drop_duplicates()
        logger.info(f"{len(pairs)} distinct (patient, trajectory) pairs from {len(labelled)} rows")

        dummies = pd.get_dummies(pairs[TRAJECTORY_ID], dtype=int)
        dummies[self.patient_col] = pairs[self.patient_col].values
        wide = dummies.groupby(self.patient_col).max()
        wide = wide.reindex(columns=self.trajectory_ids_, fill_value=0).astype(int)
        wide.columns.name = None

        elapsed_time = time.time() - start_time
        logger.info(f"Encoded {wide.shape[0]} patients x {wide.shape[1]} trajectories "
                    f"in {elapsed_time:.2f} seconds")
        return wide

    def get_feature_names_out(self, input_features=None):
        """Get output feature names."""
        self._check_fitted()
        return list(self.trajectory_ids_)

    def restrict_to_cohort(self, features: pd.DataFrame, cohort: pd.DataFrame) -> pd.DataFrame:
        """Keep only patients that are part of the cohort; trajectory columns are preserved."""
        restricted = features[features.index.isin(cohort[self.patient_col])]
        logger.info(f"Restricted trajectory features to cohort: {len(restricted)} of {len(features)} patients")
        return restricted
