"""
Model utilities for threshold selection and evaluation.
"""

import numpy as np
from typing import Dict, Tuple
from sklearn.metrics import (
    roc_auc_score, average_precision_score, f1_score,
    precision_score, recall_score, accuracy_score,
    roc_curve, confusion_matrix
)
import logging

logger = logging.getLogger(__name__)

class ThresholdOptimizer:
    """Choose a classification threshold from predicted probabilities."""

    def __init__(self, method: str = 'youden_j'):
        """
        Initialize threshold optimizer.

        Args:
            method: Optimization method ('f1_optimal', 'youden_j', 'fixed')
        """
        self.method = method

    def optimize(self, y_true: np.ndarray, y_proba: np.ndarray) -> float:
        """
        Find optimal threshold.

        Args:
            y_true: True binary labels
            y_proba: Predicted probabilities

        Returns:
            Optimal threshold value
        """
        if self.method == 'fixed':
            return 0.5
        if len(np.unique(y_true)) < 2:
            logger.warning("Only one class present in labels; using default threshold 0.5")
            return 0.5

        if self.method == 'f1_optimal':
            return self._optimize_f1(y_true, y_proba)
        elif self.method == 'youden_j':
            return self._optimize_youden_j(y_true, y_proba)
        else:
            raise ValueError(f"Unknown optimization method: {self.method}")

    def _optimize_f1(self, y_true: np.ndarray, y_proba: np.ndarray) -> float:
        """Find threshold that maximizes F1 score."""
        thresholds = np.linspace(0.05, 0.95, 91)
        best_f1 = 0
        best_threshold = 0.5

        for threshold in thresholds:
            y_pred = (y_proba >= threshold).astype(int)
            f1 = f1_score(y_true, y_pred, zero_division=0)

            if f1 > best_f1:
                best_f1 = f1
                best_threshold = float(threshold)

        logger.info(f"Optimal threshold for F1: {best_threshold:.3f} (F1: {best_f1:.3f})")
        return best_threshold

    def _optimize_youden_j(self, y_true: np.ndarray, y_proba: np.ndarray) -> float:
        """Find threshold using Youden's J statistic (sensitivity + specificity - 1)."""
        fpr, tpr, thresholds = roc_curve(y_true, y_proba)

        # J = TPR - FPR
        j_scores = tpr - fpr
        best_idx = np.argmax(j_scores)

        # roc_curve prepends an infinite threshold
        best_threshold = float(min(thresholds[best_idx], 1.0))
        logger.info(f"Optimal threshold from Youden's J: {best_threshold:.3f}")
        return best_threshold

class ModelEvaluator:
    """Evaluate predicted mortality scores against true outcomes."""

    def calculate_metrics(self,
                         y_true: np.ndarray,
                         y_pred: np.ndarray,
                         y_proba: np.ndarray) -> Dict[str, float]:
        """
        Calculate evaluation metrics.

        ROC-AUC and PR-AUC are undefined when only one class is present;
        they are reported as NaN in that case.

        Args:
            y_true: True binary labels
            y_pred: Predicted binary labels
            y_proba: Predicted probabilities

        Returns:
            Dictionary of metrics
        """
        y_true = np.asarray(y_true)
        y_pred = np.asarray(y_pred)
        y_proba = np.asarray(y_proba)
        metrics = {}

        metrics['accuracy'] = accuracy_score(y_true, y_pred)
        metrics['precision'] = precision_score(y_true, y_pred, zero_division=0)
        metrics['recall'] = recall_score(y_true, y_pred, zero_division=0)
        metrics['f1_score'] = f1_score(y_true, y_pred, zero_division=0)

        if len(np.unique(y_true)) < 2:
            logger.warning("Only one outcome class in evaluation labels; ROC-AUC is undefined")
            metrics['roc_auc'] = float('nan')
            metrics['pr_auc'] = float('nan')
        else:
            metrics['roc_auc'] = roc_auc_score(y_true, y_proba)
            metrics['pr_auc'] = average_precision_score(y_true, y_proba)

        tn, fp, fn, tp = confusion_matrix(y_true, y_pred, labels=[0, 1]).ravel()
        metrics['true_negatives'] = int(tn)
        metrics['false_positives'] = int(fp)
        metrics['false_negatives'] = int(fn)
        metrics['true_positives'] = int(tp)

        metrics['specificity'] = tn / (tn + fp) if (tn + fp) > 0 else 0
        metrics['sensitivity'] = tp / (tp + fn) if (tp + fn) > 0 else 0
        metrics['npv'] = tn / (tn + fn) if (tn + fn) > 0 else 0  # Negative Predictive Value
        metrics['ppv'] = tp / (tp + fp) if (tp + fp) > 0 else 0  # Positive Predictive Value

        return metrics

    def roc_curve_points(self, y_true: np.ndarray, y_proba: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """False and true positive rates for plotting an ROC curve."""
        fpr, tpr, _ = roc_curve(y_true, y_proba)
        return fpr, tpr
