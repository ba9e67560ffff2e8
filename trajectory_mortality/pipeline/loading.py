"""
Record loading for patient, admission and trajectory tables.

All three inputs are tab-separated text files with a header row. Date
columns are parsed against an explicit format; everything else is passed
through as pandas reads it.
"""

import logging
import time
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

import pandas as pd

from ..config import DEFAULT_CONFIG, column_names

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class ParseError(ValueError):
    """Raised when a date column holds a value that does not match the expected format."""

    def __init__(self, column: str, values: List[str], date_format: str, source: Optional[str] = None):
        self.column = column
        self.values = values
        self.date_format = date_format
        self.source = source
        where = f" in {source}" if source else ""
        preview = ', '.join(repr(v) for v in values[:5])
        super().__init__(
            f"Column '{column}'{where} has {len(values)} value(s) not matching "
            f"date format '{date_format}': {preview}"
        )


def parse_date_column(frame: pd.DataFrame,
                      column: str,
                      date_format: str = '%Y-%m-%d',
                      source: Optional[str] = None) -> pd.Series:
    """
    Parse a single column into ``datetime64`` values.

    Empty cells become ``NaT``. Any non-empty cell that does not match
    ``date_format`` raises :class:`ParseError`.
    """
    raw = frame[column]
    parsed = pd.to_datetime(raw, format=date_format, errors='coerce')

    present = raw.notna() & (raw.astype(str).str.strip() != '')
    bad_mask = present & parsed.isna()
    if bad_mask.any():
        bad_values = raw[bad_mask].astype(str).tolist()
        raise ParseError(column, bad_values, date_format, source)

    return parsed


class RecordLoader:
    """Load the three raw tables the pipeline consumes."""

    def __init__(self, config: Optional[Dict] = None):
        """
        Initialize loader.

        Args:
            config: Pipeline configuration; only the ``data`` section is read
        """
        self.config = config or DEFAULT_CONFIG
        data_config = self.config.get('data', {})
        self.separator = data_config.get('separator', '\t')
        self.date_format = data_config.get('date_format', '%Y-%m-%d')
        self.columns = column_names(self.config)

    def _read_table(self, path: PathLike, required: List[str], date_columns: List[str]) -> pd.DataFrame:
        start_time = time.time()
        p = Path(path)
        logger.info(f"Loading {p}")

        # Date columns are read as text so parsing is checked against the format
        df = pd.read_csv(p, sep=self.separator, dtype={col: str for col in date_columns})

        missing = [col for col in required if col not in df.columns]
        if missing:
            raise ValueError(f"{p} is missing required columns: {missing}")

        for col in date_columns:
            df[col] = parse_date_column(df, col, self.date_format, source=str(p))

        elapsed_time = time.time() - start_time
        logger.info(f"Loaded {p.name}: {df.shape} in {elapsed_time:.2f} seconds")
        return df

    def load_patients(self, path: PathLike) -> pd.DataFrame:
        """Load the patient demographics/status table."""
        cols = self.columns
        required = [cols['patient_id'], cols['birth_date'], cols['status_date'], cols['status']]
        df = self._read_table(path, required, [cols['birth_date'], cols['status_date']])

        duplicated = df[cols['patient_id']].duplicated().sum()
        if duplicated:
            logger.warning(f"Patient table has {duplicated} duplicated identifiers")
        return df

    def load_admissions(self, path: PathLike) -> pd.DataFrame:
        """Load the hospital admission table."""
        cols = self.columns
        required = [cols['patient_id'], cols['admission_date']]
        return self._read_table(path, required, [cols['admission_date']])

    def load_trajectories(self, path: PathLike) -> pd.DataFrame:
        """Load the disease trajectory table."""
        cols = self.columns
        required = [cols['patient_id']] + list(cols['disease_slots'])
        return self._read_table(path, required, [])

    def load_all(self,
                 patients_path: PathLike,
                 admissions_path: PathLike,
                 trajectories_path: PathLike) -> Tuple[pd.DataFrame, pd.DataFrame, pd.DataFrame]:
        """Load patients, admissions and trajectories in that order."""
        patients = self.load_patients(patients_path)
        admissions = self.load_admissions(admissions_path)
        trajectories = self.load_trajectories(trajectories_path)
        return patients, admissions, trajectories
