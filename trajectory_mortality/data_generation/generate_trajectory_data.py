"""
Synthetic Trajectory Data Generator

Generates the three tab-separated tables the pipeline consumes (patients,
admissions, disease trajectories) with a mortality signal tied to the
diseases a patient's trajectories contain.
"""

import argparse
import logging
from datetime import date, timedelta
from pathlib import Path
from typing import Dict, List, Tuple

import numpy as np
import pandas as pd
from faker import Faker
from tqdm import tqdm

logger = logging.getLogger(__name__)

DEATH_CODE = 90
ALIVE_CODES = [1, 3, 5]


class TrajectoryDataGenerator:
    """Generate synthetic patient, admission and trajectory tables."""

    def __init__(self, seed: int = 42, end_date: date = date(2018, 12, 31)):
        """Initialize the generator.

        Args:
            seed: Random seed for reproducibility
            end_date: Date at which follow-up ends for surviving patients
        """
        self.seed = seed
        self.end_date = end_date
        self.random = np.random.RandomState(seed)
        Faker.seed(seed)
        self.fake = Faker()

        self.disease_codes = [
            'I10', 'E11', 'I25', 'J44', 'N18', 'I48', 'E78', 'K21',
            'I50', 'C34', 'C18', 'F10', 'K70', 'G30', 'E66', 'M79'
        ]
        # Codes that raise the probability of dying within the outcome window
        self.high_risk_codes = {'C34': 0.35, 'I50': 0.25, 'K70': 0.25, 'C18': 0.2, 'N18': 0.15}

        # A limited pool of trajectories so that identical ones recur across patients
        self.trajectory_pool = self._build_trajectory_pool(size=40)

    def _build_trajectory_pool(self, size: int) -> List[Tuple[str, str, str, str]]:
        pool = set()
        while len(pool) < size:
            pool.add(tuple(str(c) for c in self.random.choice(self.disease_codes, size=4, replace=False)))
        return sorted(pool)

    def death_probability(self, trajectories: List[Tuple[str, str, str, str]]) -> float:
        """Probability that a patient with these trajectories dies within five years."""
        risk = 0.05
        for trajectory in trajectories:
            for code in trajectory:
                risk += self.high_risk_codes.get(code, 0.0) / 4
        return min(risk, 0.9)

    def generate_patient(self, patient_id: str) -> Dict:
        """Generate all rows for a single patient."""
        birth_date = self.fake.date_between(start_date=date(1925, 1, 1), end_date=date(1970, 12, 31))

        n_trajectories = self.random.choice([0, 1, 1, 2, 3])
        picks = self.random.choice(len(self.trajectory_pool), size=n_trajectories)
        trajectories = [self.trajectory_pool[i] for i in picks]

        diagnosis_age_days = int(self.random.uniform(40, 75) * 365.25)
        diagnosis_date = birth_date + timedelta(days=diagnosis_age_days)
        if diagnosis_date >= self.end_date:
            diagnosis_date = self.end_date - timedelta(days=int(self.random.uniform(30, 3650)))

        n_admissions = self.random.randint(1, 4)
        admission_dates = [diagnosis_date] + [
            diagnosis_date + timedelta(days=int(self.random.uniform(1, 2000)))
            for _ in range(n_admissions - 1)
        ]
        admission_dates = [d for d in admission_dates if d <= self.end_date]

        if self.random.random_sample() < self.death_probability(trajectories):
            status_date = diagnosis_date + timedelta(days=int(self.random.uniform(30, 5 * 365)))
            status = DEATH_CODE
        else:
            status_date = self.end_date
            status = int(self.random.choice(ALIVE_CODES))
        status_date = min(status_date, self.end_date)

        return {
            'patient': {
                'patient_id': patient_id,
                'birth_date': birth_date.isoformat(),
                'status_date': status_date.isoformat(),
                'status': status,
            },
            'admissions': [
                {'patient_id': patient_id, 'admission_date': d.isoformat()} for d in admission_dates
            ],
            'trajectories': [
                {'patient_id': patient_id, 'Disease1': t[0], 'Disease2': t[1],
                 'Disease3': t[2], 'Disease4': t[3]}
                for t in trajectories
            ],
        }

    def generate_dataset(self, num_patients: int) -> Tuple[pd.DataFrame, pd.DataFrame, pd.DataFrame]:
        """Generate patients, admissions and trajectories tables."""
        patients, admissions, trajectories = [], [], []
        for i in tqdm(range(num_patients), desc="Generating patients"):
            record = self.generate_patient(f'P{i:05d}')
            patients.append(record['patient'])
            admissions.extend(record['admissions'])
            trajectories.extend(record['trajectories'])

        patients_df = pd.DataFrame(patients)
        admissions_df = pd.DataFrame(admissions, columns=['patient_id', 'admission_date'])
        trajectories_df = pd.DataFrame(
            trajectories, columns=['patient_id', 'Disease1', 'Disease2', 'Disease3', 'Disease4']
        )
        logger.info(f"Generated {len(patients_df)} patients, {len(admissions_df)} admissions, "
                    f"{len(trajectories_df)} trajectory rows")
        return patients_df, admissions_df, trajectories_df

    def generate_and_save(self, num_patients: int, output_dir: str) -> Dict[str, Path]:
        """Generate the tables and write them as tab-separated files."""
        out = Path(output_dir)
        out.mkdir(parents=True, exist_ok=True)
        patients, admissions, trajectories = self.generate_dataset(num_patients)

        paths = {
            'patients': out / 'patients.tsv',
            'admissions': out / 'admissions.tsv',
            'trajectories': out / 'trajectories.tsv',
        }
        patients.to_csv(paths['patients'], sep='\t', index=False)
        admissions.to_csv(paths['admissions'], sep='\t', index=False)
        trajectories.to_csv(paths['trajectories'], sep='\t', index=False)

        for name, path in paths.items():
            logger.info(f"Wrote {name} to {path}")
        return paths


def main():
    """Main function for command line usage."""
    parser = argparse.ArgumentParser(description="Generate synthetic trajectory data")
    parser.add_argument("--num_patients", type=int, default=2000,
                        help="Number of patients to generate")
    parser.add_argument("--output_dir", type=str, default="./data/raw",
                        help="Output directory for the generated tables")
    parser.add_argument("--seed", type=int, default=42,
                        help="Random seed")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)

    generator = TrajectoryDataGenerator(seed=args.seed)
    generator.generate_and_save(args.num_patients, args.output_dir)


if __name__ == "__main__":
    main()
