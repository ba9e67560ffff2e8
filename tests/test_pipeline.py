"""
Unit tests for the trajectory mortality pipeline stages.
"""

import pytest
import pandas as pd
import numpy as np
from sklearn.exceptions import NotFittedError

from trajectory_mortality.pipeline.loading import RecordLoader, ParseError, parse_date_column
from trajectory_mortality.pipeline.cohort import CohortBuilder, compute_age


class TestRecordLoader:
    """Test loading of the tab-separated inputs."""

    def test_load_all_parses_dates(self, raw_files):
        """Date columns become datetimes, other columns pass through."""
        loader = RecordLoader()
        patients, admissions, trajectories = loader.load_all(
            raw_files['patients'], raw_files['admissions'], raw_files['trajectories']
        )

        assert pd.api.types.is_datetime64_any_dtype(patients['birth_date'])
        assert pd.api.types.is_datetime64_any_dtype(patients['status_date'])
        assert pd.api.types.is_datetime64_any_dtype(admissions['admission_date'])
        assert patients.loc[patients['patient_id'] == 'P1', 'status'].iloc[0] == 90
        assert len(trajectories) == 7
        assert list(trajectories.columns) == ['patient_id', 'Disease1', 'Disease2', 'Disease3', 'Disease4']

    def test_bad_date_raises_parse_error(self, tmp_path, raw_patients):
        """A date in the wrong format aborts loading."""
        raw_patients.loc[2, 'birth_date'] = '01/01/1940'
        path = tmp_path / 'patients.tsv'
        raw_patients.to_csv(path, sep='\t', index=False)

        with pytest.raises(ParseError) as exc_info:
            RecordLoader().load_patients(path)

        assert exc_info.value.column == 'birth_date'
        assert exc_info.value.values == ['01/01/1940']

    def test_empty_date_is_not_an_error(self):
        """Missing cells become NaT."""
        frame = pd.DataFrame({'d': ['2010-01-01', None]})
        parsed = parse_date_column(frame, 'd')
        assert parsed.iloc[0] == pd.Timestamp('2010-01-01')
        assert pd.isna(parsed.iloc[1])

    def test_missing_column(self, tmp_path):
        """Tables without the required columns are rejected."""
        path = tmp_path / 'admissions.tsv'
        pd.DataFrame({'patient_id': ['P1']}).to_csv(path, sep='\t', index=False)

        with pytest.raises(ValueError, match='admission_date'):
            RecordLoader().load_admissions(path)

    def test_custom_date_format(self, tmp_path):
        """Date format comes from configuration."""
        path = tmp_path / 'admissions.tsv'
        pd.DataFrame({'patient_id': ['P1'], 'admission_date': ['05.03.2010']}).to_csv(
            path, sep='\t', index=False
        )
        loader = RecordLoader({'data': {'date_format': '%d.%m.%Y'}})
        admissions = loader.load_admissions(path)
        assert admissions['admission_date'].iloc[0] == pd.Timestamp('2010-03-05')


class TestComputeAge:
    """Test age derivation."""

    def test_whole_years(self):
        births = pd.to_datetime(pd.Series(['1950-01-01', '1950-01-01']))
        events = pd.to_datetime(pd.Series(['2010-01-01', '2020-01-01']))
        assert compute_age(births, events).tolist() == [60.0, 70.0]

    def test_one_decimal(self):
        births = pd.to_datetime(pd.Series(['1950-01-01']))
        events = pd.to_datetime(pd.Series(['2013-06-01']))
        assert compute_age(births, events).iloc[0] == 63.4


class TestCohortBuilder:
    """Test cohort inclusion and outcome labelling."""

    def test_retained_patients(self, patients, admissions):
        """Only eligible patients remain, once each."""
        cohort = CohortBuilder().build(patients, admissions)
        assert cohort['patient_id'].tolist() == ['P1', 'P2', 'P6', 'P7']

    def test_outcomes(self, patients, admissions):
        """Death within five years of diagnosis is the positive outcome."""
        cohort = CohortBuilder().build(patients, admissions).set_index('patient_id')
        assert cohort.loc['P1', 'outcome'] == 1
        assert cohort.loc['P2', 'outcome'] == 0
        assert cohort.loc['P6', 'outcome'] == 0
        # Death exactly at five years is outside the window
        assert cohort.loc['P7', 'outcome'] == 0

    def test_documented_examples(self, patients, admissions):
        """Ages match the worked examples."""
        cohort = CohortBuilder().build(patients, admissions).set_index('patient_id')
        assert cohort.loc['P1', 'age_at_diagnosis'] == 60.0
        assert cohort.loc['P1', 'age_at_status'] == 63.4
        assert cohort.loc['P2', 'age_at_status'] == 70.0
        assert cohort.loc['P2', 'follow_up_years'] == 10.0

    def test_cohort_invariants(self, patients, admissions):
        """Every retained row satisfies the inclusion and outcome rules."""
        cohort = CohortBuilder().build(patients, admissions)
        died = cohort['status'] == 90
        follow_up = cohort['age_at_status'] - cohort['age_at_diagnosis']

        assert (cohort['age_at_diagnosis'] < 65).all()
        assert ((follow_up.round(1) > 5) | died).all()
        positives = cohort[cohort['outcome'] == 1]
        assert (positives['status'] == 90).all()
        assert (positives['follow_up_years'] < 5).all()

    def test_earliest_admission_is_default(self, patients, admissions):
        cohort = CohortBuilder().build(patients, admissions).set_index('patient_id')
        assert cohort.loc['P6', 'age_at_diagnosis'] == 50.1

    def test_latest_admission_policy(self, patients, admissions):
        cohort = CohortBuilder(admission_policy='latest').build(patients, admissions).set_index('patient_id')
        assert cohort.loc['P6', 'age_at_diagnosis'] == 57.1
        assert cohort.index.is_unique

    def test_unknown_admission_policy(self):
        with pytest.raises(ValueError):
            CohortBuilder(admission_policy='all')

    def test_status_read_as_text(self, patients, admissions):
        """A textual death code still counts as death."""
        patients['status'] = patients['status'].astype(str)
        cohort = CohortBuilder().build(patients, admissions).set_index('patient_id')
        assert cohort.loc['P1', 'outcome'] == 1
        assert 'P7' in cohort.index

    def test_death_without_status_date_excluded(self, patients, admissions):
        """A death with no status date cannot be labelled and is dropped."""
        patients.loc[patients['patient_id'] == 'P1', 'status_date'] = pd.NaT
        cohort = CohortBuilder().build(patients, admissions)

        assert 'P1' not in cohort['patient_id'].tolist()
        assert cohort['patient_id'].tolist() == ['P2', 'P6', 'P7']
        assert cohort['age_at_status'].notna().all()

    def test_from_config(self):
        builder = CohortBuilder.from_config({'cohort': {'max_diagnosis_age': 70, 'admission_policy': 'latest'}})
        assert builder.max_diagnosis_age == 70
        assert builder.admission_policy == 'latest'
        assert builder.death_code == 90


from trajectory_mortality.pipeline.trajectory_encoding import TrajectoryEncoder


class TestTrajectoryEncoder:
    """Test trajectory cataloguing and one-hot encoding."""

    def test_catalog_ids(self, trajectories):
        """Unique trajectories get identifiers in first-occurrence order."""
        encoder = TrajectoryEncoder().fit(trajectories)
        assert encoder.trajectory_ids_ == ['T1', 'T2', 'T3']
        first = encoder.catalog_.iloc[0]
        assert (first['Disease1'], first['Disease4']) == ('A', 'D')

    def test_identifier_is_injective(self, trajectories):
        """Identical combinations share an id, distinct combinations never do."""
        encoder = TrajectoryEncoder().fit(trajectories)
        labelled = encoder.assign_ids(trajectories)
        per_combo = labelled.groupby(['Disease1', 'Disease2', 'Disease3', 'Disease4'])['trajectory_id'].nunique()
        per_id = labelled.groupby('trajectory_id').apply(
            lambda g: len(g[['Disease1', 'Disease2', 'Disease3', 'Disease4']].drop_duplicates())
        )
        assert (per_combo == 1).all()
        assert (per_id == 1).all()

    def test_order_sensitive(self, trajectories):
        """A reversed trajectory is a different trajectory."""
        labelled = TrajectoryEncoder().fit(trajectories).assign_ids(trajectories)
        ids = labelled.set_index('patient_id')['trajectory_id']
        assert ids.loc['P2'] != ids.loc['P3']

    def test_transform_wide_binary(self, trajectories):
        encoder = TrajectoryEncoder().fit(trajectories)
        wide = encoder.transform(trajectories)

        assert list(wide.columns) == ['T1', 'T2', 'T3']
        assert wide.loc['P1'].tolist() == [1, 1, 0]
        assert wide.loc['P2'].tolist() == [1, 0, 0]
        assert wide.loc['P3'].tolist() == [0, 0, 1]
        # Same trajectory for different patients maps to the same column
        assert wide.loc['P9', 'T1'] == 1
        assert set(np.unique(wide.values)) <= {0, 1}

    def test_restrict_to_cohort_keeps_columns(self, trajectories, patients, admissions):
        """Trajectories never seen in the cohort remain as all-zero columns."""
        cohort = CohortBuilder().build(patients, admissions)
        encoder = TrajectoryEncoder().fit(trajectories)
        restricted = encoder.restrict_to_cohort(encoder.transform(trajectories), cohort)

        assert sorted(restricted.index) == ['P1', 'P2', 'P6']
        assert list(restricted.columns) == ['T1', 'T2', 'T3']
        assert (restricted['T3'] == 0).all()

    def test_transform_before_fit(self, trajectories):
        with pytest.raises(NotFittedError):
            TrajectoryEncoder().transform(trajectories)

    def test_missing_slots_match(self):
        """Trajectories shorter than four diseases still encode consistently."""
        df = pd.DataFrame({
            'patient_id': ['P1', 'P2'],
            'Disease1': ['A', 'A'],
            'Disease2': ['B', 'B'],
            'Disease3': [None, None],
            'Disease4': [None, None],
        })
        wide = TrajectoryEncoder().fit_transform(df)
        assert list(wide.columns) == ['T1']
        assert wide['T1'].tolist() == [1, 1]


from trajectory_mortality.pipeline.assembly import DatasetAssembler, PatientSplitter, EmptyPartitionError


@pytest.fixture
def encoded(trajectories, patients, admissions):
    cohort = CohortBuilder().build(patients, admissions)
    encoder = TrajectoryEncoder().fit(trajectories)
    features = encoder.restrict_to_cohort(encoder.transform(trajectories), cohort)
    return features, cohort


class TestDatasetAssembler:
    """Test joining features with outcomes."""

    def test_exclude_policy(self, encoded):
        """Cohort patients without trajectories are dropped by default."""
        features, cohort = encoded
        dataset = DatasetAssembler().assemble(features, cohort)

        assert sorted(dataset['patient_id']) == ['P1', 'P2', 'P6']
        assert list(dataset.columns) == ['patient_id', 'T1', 'T2', 'T3', 'outcome']
        assert dataset.set_index('patient_id').loc['P1', 'outcome'] == 1

    def test_zero_fill_policy(self, encoded):
        """Cohort patients without trajectories get an all-zero row."""
        features, cohort = encoded
        dataset = DatasetAssembler(missing_trajectory_policy='zero_fill').assemble(features, cohort)
        dataset = dataset.set_index('patient_id')

        assert sorted(dataset.index) == ['P1', 'P2', 'P6', 'P7']
        assert dataset.loc['P7', ['T1', 'T2', 'T3']].tolist() == [0, 0, 0]
        assert dataset['T1'].dtype.kind == 'i'

    def test_unknown_policy(self):
        with pytest.raises(ValueError):
            DatasetAssembler(missing_trajectory_policy='impute')


class TestPatientSplitter:
    """Test the patient-level train/test split."""

    def _dataset(self, n):
        return pd.DataFrame({
            'patient_id': [f'P{i}' for i in range(n)],
            'T1': [i % 2 for i in range(n)],
            'outcome': [int(i % 3 == 0) for i in range(n)],
        })

    def test_disjoint_and_covering(self):
        dataset = self._dataset(100)
        split = PatientSplitter(seed=0).split(dataset)

        train, test = set(split.train_ids), set(split.test_ids)
        assert not train & test
        assert train | test == set(dataset['patient_id'])
        assert len(train) == 70
        assert len(test) == 30

    def test_identifier_column_removed(self):
        split = PatientSplitter(seed=0).split(self._dataset(10))
        assert 'patient_id' not in split.train.columns
        assert 'patient_id' not in split.test.columns
        assert split.feature_columns == ['T1']
        X_test, y_test = split.X_test, split.y_test
        assert list(X_test.columns) == ['T1']
        assert y_test.name == 'outcome'
        assert len(split.X_train) == len(split.y_train) == 7

    def test_seed_reproducible(self):
        dataset = self._dataset(50)
        first = PatientSplitter(seed=123).split(dataset)
        second = PatientSplitter(seed=123).split(dataset)
        assert list(first.train_ids) == list(second.train_ids)

    def test_injected_generator(self):
        dataset = self._dataset(50)
        first = PatientSplitter(rng=np.random.default_rng(5)).split(dataset)
        second = PatientSplitter(rng=np.random.default_rng(5)).split(dataset)
        assert set(first.test_ids) == set(second.test_ids)

    def test_empty_partition_fails(self):
        with pytest.raises(EmptyPartitionError):
            PatientSplitter(seed=0).split(self._dataset(1))

    def test_invalid_fraction(self):
        with pytest.raises(ValueError):
            PatientSplitter(train_fraction=1.0)

    def test_seed_and_rng_together_rejected(self):
        """An explicit generator and a seed are mutually exclusive."""
        with pytest.raises(ValueError, match="not both"):
            PatientSplitter(seed=1, rng=np.random.default_rng(1))


if __name__ == "__main__":
    pytest.main([__file__])
