"""
Experiment tracking utilities using MLflow.
"""

import time
import mlflow
import pandas as pd
import logging
from typing import Dict, Any, Optional

logger = logging.getLogger(__name__)

class ExperimentTracker:
    """MLflow experiment tracking wrapper."""

    def __init__(self, mlflow_config: Dict[str, Any]):
        """
        Initialize experiment tracker.

        Args:
            mlflow_config: The ``mlflow`` section of the pipeline configuration
        """
        self.config = mlflow_config
        self.tracking_uri = mlflow_config.get('tracking_uri', 'file:./mlruns')
        self.experiment_name = mlflow_config.get('experiment_name', 'trajectory_mortality')

        mlflow.set_tracking_uri(self.tracking_uri)

        # Create or get experiment, handling deleted experiments
        try:
            experiment_id = mlflow.create_experiment(self.experiment_name)
        except Exception:
            experiment = mlflow.get_experiment_by_name(self.experiment_name)
            if experiment and experiment.lifecycle_stage != "deleted":
                experiment_id = experiment.experiment_id
            else:
                new_name = f"{self.experiment_name}_{int(time.time())}"
                experiment_id = mlflow.create_experiment(new_name)
                self.experiment_name = new_name

        mlflow.set_experiment(experiment_id=experiment_id)

    def start_run(self, run_name: Optional[str] = None):
        """Start MLflow run."""
        return mlflow.start_run(run_name=run_name)

    def log_params(self, params: Dict[str, Any], prefix: str = ""):
        """Log parameters to MLflow."""
        flat_params = self._flatten_dict(params, prefix)
        for key, value in flat_params.items():
            try:
                mlflow.log_param(key, value)
            except Exception as e:
                logger.warning(f"Failed to log param {key}: {e}")

    def log_metrics(self, metrics: Dict[str, float], step: Optional[int] = None):
        """Log metrics to MLflow."""
        for key, value in metrics.items():
            try:
                mlflow.log_metric(key, value, step=step)
            except Exception as e:
                logger.warning(f"Failed to log metric {key}: {e}")

    def log_artifacts(self, artifact_path: str):
        """Log artifacts to MLflow."""
        try:
            mlflow.log_artifacts(artifact_path)
        except Exception as e:
            logger.warning(f"Failed to log artifacts: {e}")

    def log_dict(self, dictionary: Dict[str, Any], artifact_file: str):
        """Log a dictionary (e.g. run metrics) as a JSON or YAML artifact."""
        try:
            mlflow.log_dict(dictionary, artifact_file)
            logger.info(f"Dictionary logged as {artifact_file}")
        except Exception as e:
            logger.warning(f"Failed to log dictionary to MLflow: {e}")

    def log_model(self, model, model_name: str = "model", input_example: Optional[pd.DataFrame] = None):
        """
        Log a fitted classifier to MLflow.

        Args:
            model: Fitted scikit-learn estimator
            model_name: Artifact name for the model
            input_example: A few trajectory feature rows used to infer the model signature
        """
        kwargs = {}
        if input_example is not None:
            # The classifier is fitted on plain arrays; keep the example in the same form
            kwargs['input_example'] = input_example.to_numpy()
        try:
            mlflow.sklearn.log_model(model, model_name, **kwargs)
        except Exception as e:
            logger.warning(f"Failed to log model with input example: {e}")
            if kwargs:
                try:
                    mlflow.sklearn.log_model(model, model_name)
                except Exception as e2:
                    logger.error(f"Failed to log model: {e2}")

    def _flatten_dict(self, d: Dict[str, Any], prefix: str = "") -> Dict[str, str]:
        """Flatten nested dictionary for parameter logging."""
        items = []

        for key, value in d.items():
            new_key = f"{prefix}.{key}" if prefix else key

            if isinstance(value, dict):
                items.extend(self._flatten_dict(value, new_key).items())
            else:
                # Convert to string for MLflow
                items.append((new_key, str(value)))

        return dict(items)
