"""
Rule-based quality checks for cohort and dataset tables.
"""

import logging
from typing import Dict, List

import pandas as pd

logger = logging.getLogger(__name__)


class CohortValidator:
    """Validate cohort tables against range, categorical and missing-rate rules."""

    def __init__(self):
        self.validation_rules = {}

    def add_rule(self, feature: str, rule_type: str, **kwargs):
        """Add validation rule for a column."""
        if feature not in self.validation_rules:
            self.validation_rules[feature] = []

        self.validation_rules[feature].append({
            'type': rule_type,
            'params': kwargs
        })

    def validate(self, df: pd.DataFrame) -> Dict[str, List[str]]:
        """Validate dataframe against rules."""
        violations = {}

        for feature, rules in self.validation_rules.items():
            if feature not in df.columns:
                continue

            feature_violations = []

            for rule in rules:
                if rule['type'] == 'range':
                    min_val = rule['params'].get('min')
                    max_val = rule['params'].get('max')
                    # Strict bounds are exclusive of the boundary value
                    strict = rule['params'].get('strict', False)

                    if min_val is not None:
                        below = df[feature] <= min_val if strict else df[feature] < min_val
                        violation_count = below.sum()
                        if violation_count > 0:
                            feature_violations.append(f"{violation_count} values below minimum {min_val}")

                    if max_val is not None:
                        above = df[feature] >= max_val if strict else df[feature] > max_val
                        violation_count = above.sum()
                        if violation_count > 0:
                            feature_violations.append(f"{violation_count} values above maximum {max_val}")

                elif rule['type'] == 'categorical':
                    allowed_values = rule['params'].get('allowed_values', [])
                    invalid_mask = ~df[feature].isin(allowed_values)
                    violation_count = invalid_mask.sum()

                    if violation_count > 0:
                        feature_violations.append(f"{violation_count} invalid categorical values")

                elif rule['type'] == 'missing_rate':
                    max_missing_rate = rule['params'].get('max_rate', 0.1)
                    missing_rate = df[feature].isnull().mean()

                    if missing_rate > max_missing_rate:
                        feature_violations.append(f"Missing rate {missing_rate:.2%} exceeds {max_missing_rate:.2%}")

                elif rule['type'] == 'unique':
                    duplicated = df[feature].duplicated().sum()
                    if duplicated > 0:
                        feature_violations.append(f"{duplicated} duplicated values")

                else:
                    raise ValueError(f"Unknown rule type: {rule['type']}")

            if feature_violations:
                violations[feature] = feature_violations

        return violations

    def setup_cohort_rules(self,
                           patient_col: str = 'patient_id',
                           max_diagnosis_age: float = 65):
        """Setup validation rules for the cohort table."""
        self.add_rule('age_at_diagnosis', 'range', min=0)
        self.add_rule('age_at_diagnosis', 'range', max=max_diagnosis_age, strict=True)
        self.add_rule('age_at_status', 'range', min=0, max=120)
        self.add_rule('follow_up_years', 'range', min=0)

        self.add_rule('outcome', 'categorical', allowed_values=[0, 1])

        self.add_rule(patient_col, 'unique')
        for feature in [patient_col, 'age_at_diagnosis', 'age_at_status']:
            self.add_rule(feature, 'missing_rate', max_rate=0.0)

    def setup_dataset_rules(self, feature_columns: List[str], label_col: str = 'outcome'):
        """Setup validation rules for an assembled feature table."""
        for feature in feature_columns:
            self.add_rule(feature, 'categorical', allowed_values=[0, 1])
        self.add_rule(label_col, 'categorical', allowed_values=[0, 1])


def log_violations(violations: Dict[str, List[str]], table: str) -> None:
    if violations:
        logger.warning(f"Found {len(violations)} data quality issues in {table}")
        for feature, messages in violations.items():
            for message in messages:
                logger.warning(f"  {feature}: {message}")
    else:
        logger.info(f"{table} validation passed")
