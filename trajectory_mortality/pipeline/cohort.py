"""
Cohort construction: join patients with admissions, derive ages, apply the
inclusion rule and label 5-year mortality.
"""

import logging
import time
from typing import Dict, Optional

import numpy as np
import pandas as pd

from ..config import DEFAULT_CONFIG, column_names

logger = logging.getLogger(__name__)

DAYS_PER_YEAR = 365.25

AGE_AT_DIAGNOSIS = 'age_at_diagnosis'
AGE_AT_STATUS = 'age_at_status'
FOLLOW_UP = 'follow_up_years'
OUTCOME = 'outcome'


def compute_age(birth_dates: pd.Series, event_dates: pd.Series) -> pd.Series:
    """Elapsed years between two date columns, rounded to one decimal."""
    elapsed_days = (event_dates - birth_dates).dt.days
    return (elapsed_days / DAYS_PER_YEAR).round(1)


class CohortBuilder:
    """Build the study cohort from patient and admission tables."""

    ADMISSION_POLICIES = ('earliest', 'latest')

    def __init__(self,
                 death_code: int = 90,
                 max_diagnosis_age: float = 65,
                 follow_up_years: float = 5,
                 admission_policy: str = 'earliest',
                 columns: Optional[Dict] = None):
        """
        Initialize cohort builder.

        Args:
            death_code: Status code that denotes death
            max_diagnosis_age: Patients diagnosed at this age or older are excluded
            follow_up_years: Length of the outcome window in years
            admission_policy: Which admission counts as diagnosis ('earliest', 'latest')
            columns: Column name mapping, see ``config.DEFAULT_CONFIG['data']['columns']``
        """
        if admission_policy not in self.ADMISSION_POLICIES:
            raise ValueError(f"Unknown admission policy: {admission_policy}")

        self.death_code = death_code
        self.max_diagnosis_age = max_diagnosis_age
        self.follow_up_years = follow_up_years
        self.admission_policy = admission_policy
        self.columns = columns or column_names(DEFAULT_CONFIG)

    @classmethod
    def from_config(cls, config: Dict) -> 'CohortBuilder':
        cohort_config = config.get('cohort', {})
        return cls(
            death_code=cohort_config.get('death_code', 90),
            max_diagnosis_age=cohort_config.get('max_diagnosis_age', 65),
            follow_up_years=cohort_config.get('follow_up_years', 5),
            admission_policy=cohort_config.get('admission_policy', 'earliest'),
            columns=column_names(config)
        )

    def select_diagnosis_admission(self, admissions: pd.DataFrame) -> pd.DataFrame:
        """Reduce admissions to one row per patient according to the admission policy."""
        id_col = self.columns['patient_id']
        date_col = self.columns['admission_date']

        dated = admissions.dropna(subset=[date_col])
        undated = len(admissions) - len(dated)
        if undated:
            logger.info(f"Ignoring {undated} admissions without a date")

        ascending = self.admission_policy == 'earliest'
        selected = (
            dated.sort_values([id_col, date_col], ascending=[True, ascending], kind='mergesort')
            .drop_duplicates(subset=[id_col], keep='first')
        )
        logger.info(f"Selected {self.admission_policy} admission for {len(selected)} patients "
                    f"from {len(dated)} admission records")
        return selected[[id_col, date_col]]

    def is_death(self, status: pd.Series) -> pd.Series:
        # Status may be read as text; compare numerically
        return pd.to_numeric(status, errors='coerce') == self.death_code

    def build(self, patients: pd.DataFrame, admissions: pd.DataFrame) -> pd.DataFrame:
        """
        Build the cohort table.

        Args:
            patients: Patient table with birth date, status date and status code
            admissions: Admission table with one or more rows per patient

        Returns:
            One row per retained patient with ages, follow-up and outcome
        """
        start_time = time.time()
        logger.info("Building cohort...")
        cols = self.columns
        id_col = cols['patient_id']

        diagnosis = self.select_diagnosis_admission(admissions)
        joined = patients.merge(diagnosis, on=id_col, how='inner')
        dropped = patients[id_col].nunique() - joined[id_col].nunique()
        logger.info(f"Joined patients with admissions: {len(joined)} rows "
                    f"({dropped} patients without admission dropped)")

        cohort = joined[[id_col, cols['status']]].copy()
        cohort[AGE_AT_DIAGNOSIS] = compute_age(joined[cols['birth_date']], joined[cols['admission_date']])
        cohort[AGE_AT_STATUS] = compute_age(joined[cols['birth_date']], joined[cols['status_date']])
        # Round again so that e.g. 65.3 - 60.3 compares equal to 5.0
        cohort[FOLLOW_UP] = (cohort[AGE_AT_STATUS] - cohort[AGE_AT_DIAGNOSIS]).round(1)

        died = self.is_death(cohort[cols['status']])
        young_enough = cohort[AGE_AT_DIAGNOSIS] < self.max_diagnosis_age
        followed_up = cohort[FOLLOW_UP] > self.follow_up_years
        # Without a status age the outcome window cannot be evaluated
        status_known = cohort[AGE_AT_STATUS].notna()
        keep = young_enough & status_known & (followed_up | died)

        logger.info(f"Excluded {int((~young_enough).sum())} patients diagnosed at age "
                    f">= {self.max_diagnosis_age} or with unknown age")
        logger.info(f"Excluded {int((young_enough & ~status_known).sum())} patients with unknown status date")
        logger.info(f"Excluded {int((young_enough & status_known & ~followed_up & ~died).sum())} censored "
                    f"patients (follow-up <= {self.follow_up_years} years without death)")

        cohort = cohort[keep].copy()
        cohort_died = died[keep]
        within_window = cohort[FOLLOW_UP] < self.follow_up_years
        cohort[OUTCOME] = np.where(within_window & cohort_died, 1, 0).astype(int)

        cohort = cohort[[id_col, AGE_AT_DIAGNOSIS, AGE_AT_STATUS, FOLLOW_UP, cols['status'], OUTCOME]]
        cohort = cohort.reset_index(drop=True)

        elapsed_time = time.time() - start_time
        prevalence = cohort[OUTCOME].mean() if len(cohort) else 0.0
        logger.info(f"Built cohort of {len(cohort)} patients (outcome prevalence {prevalence:.3f}) "
                    f"in {elapsed_time:.2f} seconds")
        return cohort
