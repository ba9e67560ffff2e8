"""Test configuration and fixtures."""

import copy

import pytest
import pandas as pd

from trajectory_mortality.config import DEFAULT_CONFIG

# P1: dies 3.4 years after diagnosis at 60.0 -> retained, outcome 1
# P2: alive 10 years after diagnosis at 60.0 -> retained, outcome 0
# P3: diagnosed at 70.0 -> excluded
# P4: alive, only 2 years follow-up -> censored, excluded
# P5: no admission -> excluded
# P6: two admissions, earliest at 50.1, alive -> retained, outcome 0
# P7: dies exactly 5.0 years after diagnosis -> retained, outcome 0
# P8: alive exactly 5.0 years after diagnosis -> excluded
PATIENT_ROWS = [
    ('P1', '1950-01-01', '2013-06-01', 90),
    ('P2', '1950-01-01', '2020-01-01', 1),
    ('P3', '1940-01-01', '2012-01-01', 90),
    ('P4', '1960-01-01', '2012-01-01', 1),
    ('P5', '1955-01-01', '2019-01-01', 1),
    ('P6', '1955-03-15', '2018-01-01', 1),
    ('P7', '1950-01-01', '2005-01-01', 90),
    ('P8', '1950-01-01', '2005-01-01', 1),
]

ADMISSION_ROWS = [
    ('P1', '2010-01-01'),
    ('P2', '2010-01-01'),
    ('P3', '2010-01-01'),
    ('P4', '2010-01-01'),
    ('P6', '2012-05-01'),
    ('P6', '2005-05-01'),
    ('P7', '2000-01-01'),
    ('P8', '2000-01-01'),
]

TRAJECTORY_ROWS = [
    ('P1', 'A', 'B', 'C', 'D'),
    ('P1', 'A', 'B', 'C', 'D'),
    ('P1', 'E', 'F', 'G', 'H'),
    ('P2', 'A', 'B', 'C', 'D'),
    ('P3', 'D', 'C', 'B', 'A'),
    ('P6', 'E', 'F', 'G', 'H'),
    ('P9', 'A', 'B', 'C', 'D'),
]

DISEASE_SLOTS = ['Disease1', 'Disease2', 'Disease3', 'Disease4']


@pytest.fixture
def raw_patients():
    """Patient table with dates as text, as it appears on disk."""
    return pd.DataFrame(PATIENT_ROWS, columns=['patient_id', 'birth_date', 'status_date', 'status'])


@pytest.fixture
def raw_admissions():
    return pd.DataFrame(ADMISSION_ROWS, columns=['patient_id', 'admission_date'])


@pytest.fixture
def trajectories():
    return pd.DataFrame(TRAJECTORY_ROWS, columns=['patient_id'] + DISEASE_SLOTS)


@pytest.fixture
def patients(raw_patients):
    """Patient table with parsed dates."""
    df = raw_patients.copy()
    df['birth_date'] = pd.to_datetime(df['birth_date'])
    df['status_date'] = pd.to_datetime(df['status_date'])
    return df


@pytest.fixture
def admissions(raw_admissions):
    df = raw_admissions.copy()
    df['admission_date'] = pd.to_datetime(df['admission_date'])
    return df


@pytest.fixture
def raw_files(tmp_path, raw_patients, raw_admissions, trajectories):
    """The three input tables written as tab-separated files."""
    paths = {
        'patients': tmp_path / 'patients.tsv',
        'admissions': tmp_path / 'admissions.tsv',
        'trajectories': tmp_path / 'trajectories.tsv',
    }
    raw_patients.to_csv(paths['patients'], sep='\t', index=False)
    raw_admissions.to_csv(paths['admissions'], sep='\t', index=False)
    trajectories.to_csv(paths['trajectories'], sep='\t', index=False)
    return paths


@pytest.fixture
def sample_config(tmp_path):
    """Pipeline configuration with tracking pointed at a temporary directory."""
    config = copy.deepcopy(DEFAULT_CONFIG)
    config['random_seed'] = 7
    config['model']['mlp']['max_iter'] = 50
    config['mlflow'] = {
        'enabled': False,
        'experiment_name': 'test_experiment',
        'tracking_uri': f'file:{tmp_path}/mlruns'
    }
    return config
