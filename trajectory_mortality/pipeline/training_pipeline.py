"""
Main Training Pipeline

Loads the raw tables, builds the cohort, encodes trajectories, assembles and
splits the dataset, then fits a small feed-forward classifier and scores it
on the held-out patients.
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import joblib
import numpy as np
import pandas as pd
import yaml
from sklearn.neural_network import MLPClassifier

from ..config import column_names, load_config
from ..utils.experiment_tracking import ExperimentTracker
from ..utils.model_utils import ModelEvaluator, ThresholdOptimizer
from .assembly import DatasetAssembler, PatientSplitter, SplitDataset
from .cohort import CohortBuilder, OUTCOME
from .loading import RecordLoader
from .trajectory_encoding import TrajectoryEncoder
from .validation import CohortValidator, log_violations

logger = logging.getLogger(__name__)


def create_model(config: Dict) -> MLPClassifier:
    """Build the feed-forward classifier described by the ``model`` config section."""
    model_config = config.get("model", {})
    algorithm = model_config.get("algorithm", "mlp")
    if algorithm != "mlp":
        raise ValueError(f"Unsupported algorithm: {algorithm}")

    params = dict(model_config.get("mlp", {}))
    params["hidden_layer_sizes"] = tuple(params.get("hidden_layer_sizes", (16,)))
    params.setdefault("random_state", config.get("random_seed", 42))
    logger.info(f"Creating MLPClassifier with params: {params}")
    return MLPClassifier(**params)


# =====================
# MortalityPipeline
# =====================
class MortalityPipeline:
    """End-to-end 5-year mortality pipeline over disease trajectories."""

    def __init__(self, config: Dict, rng: Optional[np.random.Generator] = None):
        self.config = config
        self.columns = column_names(config)
        self.rng = rng if rng is not None else np.random.default_rng(config.get("random_seed"))

        self.loader = RecordLoader(config)
        self.cohort_builder = CohortBuilder.from_config(config)
        self.encoder = TrajectoryEncoder(
            patient_col=self.columns["patient_id"],
            disease_slots=self.columns["disease_slots"],
        )
        assembly_cfg = config.get("assembly", {})
        self.assembler = DatasetAssembler(
            patient_col=self.columns["patient_id"],
            label_col=OUTCOME,
            missing_trajectory_policy=assembly_cfg.get("missing_trajectory_policy", "exclude"),
        )
        self.splitter = PatientSplitter(
            train_fraction=assembly_cfg.get("train_fraction", 0.7),
            rng=self.rng,
            patient_col=self.columns["patient_id"],
            label_col=OUTCOME,
        )
        self.threshold_optimizer = ThresholdOptimizer(
            method=config.get("threshold", {}).get("method", "youden_j")
        )
        self.evaluator = ModelEvaluator()

        self.model: Optional[MLPClassifier] = None
        self.best_threshold: float = 0.5
        self.cohort: Optional[pd.DataFrame] = None
        self.dataset: Optional[pd.DataFrame] = None
        self.split: Optional[SplitDataset] = None
        self.roc_curve: Optional[pd.DataFrame] = None

    # ---------- Data ----------
    def validate_cohort(self, cohort: pd.DataFrame) -> Dict:
        logger.info("Validating cohort...")
        validator = CohortValidator()
        validator.setup_cohort_rules(
            patient_col=self.columns["patient_id"],
            max_diagnosis_age=self.cohort_builder.max_diagnosis_age,
        )
        violations = validator.validate(cohort)
        log_violations(violations, "cohort")
        return violations

    def prepare_dataset(self,
                        patients: pd.DataFrame,
                        admissions: pd.DataFrame,
                        trajectories: pd.DataFrame) -> SplitDataset:
        """Run cohort building, trajectory encoding, assembly and splitting on loaded tables."""
        self.cohort = self.cohort_builder.build(patients, admissions)
        self.validate_cohort(self.cohort)

        # Catalog spans the full trajectory table, not only cohort patients
        self.encoder.fit(trajectories)
        features = self.encoder.transform(trajectories)
        features = self.encoder.restrict_to_cohort(features, self.cohort)

        self.dataset = self.assembler.assemble(features, self.cohort)
        dataset_validator = CohortValidator()
        dataset_validator.setup_dataset_rules(list(features.columns), label_col=OUTCOME)
        log_violations(dataset_validator.validate(self.dataset), "dataset")

        self.split = self.splitter.split(self.dataset)
        return self.split

    # ---------- Model ----------
    def train_model(self, split: SplitDataset) -> Dict[str, float]:
        """Fit the classifier on the train partition and pick a decision threshold."""
        X_train, y_train = split.X_train, split.y_train
        logger.info(f"Training on {X_train.shape[0]} patients x {X_train.shape[1]} trajectory features")

        self.model = create_model(self.config)
        self.model.fit(X_train.to_numpy(), y_train.to_numpy())

        train_proba = self.model.predict_proba(X_train.to_numpy())[:, 1]
        self.best_threshold = self.threshold_optimizer.optimize(y_train.to_numpy(), train_proba)
        train_pred = (train_proba >= self.best_threshold).astype(int)
        return self.evaluator.calculate_metrics(y_train.to_numpy(), train_pred, train_proba)

    def evaluate_model(self, split: SplitDataset) -> Dict[str, float]:
        """Score the held-out partition."""
        if self.model is None:
            raise ValueError("Model not trained")
        X_test, y_test = split.X_test, split.y_test
        test_proba = self.model.predict_proba(X_test.to_numpy())[:, 1]
        test_pred = (test_proba >= self.best_threshold).astype(int)
        metrics = self.evaluator.calculate_metrics(y_test.to_numpy(), test_pred, test_proba)
        if y_test.nunique() > 1:
            fpr, tpr = self.evaluator.roc_curve_points(y_test.to_numpy(), test_proba)
            self.roc_curve = pd.DataFrame({"fpr": fpr, "tpr": tpr})
        logger.info(f"Test ROC-AUC: {metrics['roc_auc']:.4f}")
        return metrics

    # ---------- Artifacts ----------
    def save_artifacts(self, output_dir: str, metrics: Dict[str, Any]):
        out = Path(output_dir)
        out.mkdir(parents=True, exist_ok=True)

        if self.model is not None:
            joblib.dump(self.model, out / "model.joblib")
        (out / "optimal_threshold.txt").write_text(f"{self.best_threshold}\n", encoding="utf-8")

        def convert_numpy_types(obj):
            if isinstance(obj, dict):
                return {k: convert_numpy_types(v) for k, v in obj.items()}
            if isinstance(obj, (list, tuple)):
                return [convert_numpy_types(v) for v in obj]
            if isinstance(obj, np.generic):
                return obj.item()
            return obj

        (out / "metrics.yaml").write_text(yaml.safe_dump(convert_numpy_types(metrics)), encoding="utf-8")
        (out / "pipeline_config.yaml").write_text(yaml.safe_dump(convert_numpy_types(self.config)), encoding="utf-8")

        if hasattr(self.encoder, "catalog_"):
            self.encoder.catalog_.to_csv(out / "trajectory_catalog.tsv", sep="\t", index=False)
        if self.split is not None:
            self.split.train.to_csv(out / "train.tsv", sep="\t", index=False)
            self.split.test.to_csv(out / "test.tsv", sep="\t", index=False)
        if self.roc_curve is not None:
            self.roc_curve.to_csv(out / "roc_curve.tsv", sep="\t", index=False)

        logger.info(f"Saved artifacts to {out}")

    # ---------- Orchestration ----------
    def run_pipeline(self,
                     patients_path: str,
                     admissions_path: str,
                     trajectories_path: str,
                     output_dir: str) -> Dict[str, Dict[str, float]]:
        patients, admissions, trajectories = self.loader.load_all(
            patients_path, admissions_path, trajectories_path
        )
        split = self.prepare_dataset(patients, admissions, trajectories)

        train_metrics = self.train_model(split)
        test_metrics = self.evaluate_model(split)
        all_metrics = {
            "train": train_metrics,
            "test": test_metrics,
            "threshold": self.best_threshold,
            "n_train_patients": int(len(split.train_ids)),
            "n_test_patients": int(len(split.test_ids)),
            "n_trajectories": len(split.feature_columns),
        }
        self.save_artifacts(output_dir, all_metrics)

        mlflow_cfg = self.config.get("mlflow", {})
        if mlflow_cfg.get("enabled", False):
            tracker = ExperimentTracker(mlflow_cfg)
            with tracker.start_run():
                tracker.log_params(self.config)
                tracker.log_metrics({f"train_{k}": v for k, v in train_metrics.items()})
                tracker.log_metrics({f"test_{k}": v for k, v in test_metrics.items()})
                tracker.log_dict(all_metrics, "metrics.json")
                tracker.log_artifacts(output_dir)
                tracker.log_model(self.model, "model", input_example=split.X_test.head(5))

        logger.info("Pipeline completed successfully!")
        return all_metrics


# =====================
# CLI entrypoint
# =====================

def main():
    parser = argparse.ArgumentParser(description="Train 5-year mortality model from disease trajectories")
    parser.add_argument("--config", type=str, default=None, help="Path to pipeline configuration file")
    parser.add_argument("--patients", type=str, required=True, help="Tab-separated patient table")
    parser.add_argument("--admissions", type=str, required=True, help="Tab-separated admission table")
    parser.add_argument("--trajectories", type=str, required=True, help="Tab-separated trajectory table")
    parser.add_argument("--output", type=str, default="./models", help="Output directory for artifacts")
    parser.add_argument("--seed", type=int, default=None, help="Override random_seed from the config")
    args = parser.parse_args()

    config = load_config(args.config)
    if args.seed is not None:
        config["random_seed"] = args.seed

    logging.basicConfig(level=config.get("logging", {}).get("level", "INFO"))

    pipeline = MortalityPipeline(config)
    metrics = pipeline.run_pipeline(args.patients, args.admissions, args.trajectories, args.output)

    print(f"Test ROC-AUC: {metrics['test']['roc_auc']:.4f}. Artifacts in: {args.output}")


if __name__ == "__main__":
    main()
