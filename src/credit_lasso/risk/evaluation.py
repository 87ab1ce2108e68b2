"""Evaluation of credit default predictions."""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Union

import numpy as np
import pandas as pd
from sklearn.metrics import confusion_matrix, roc_auc_score, roc_curve

from credit_lasso.data.loader import create_random_split
from credit_lasso.features.design import DesignMatrixBuilder, DesignSchema, outcome_vector
from credit_lasso.models.lasso import CoefficientVector, LassoLogisticModel
from credit_lasso.utils.helpers import safe_divide

logger = logging.getLogger(__name__)

DEFAULT_CUTOFFS = (0.2, 0.5)


def predict_probability(coef: CoefficientVector, X: pd.DataFrame) -> np.ndarray:
    """Probability of default for each row under a selected coefficient vector."""
    return coef.predict_proba(X)


def classify(prob: np.ndarray, cutoff: float) -> np.ndarray:
    """Label rows positive (1) where ``prob >= cutoff``, negative (0) otherwise."""
    return (np.asarray(prob, dtype=float) >= cutoff).astype(int)


def confusion_metrics(
    y_true: Sequence[int],
    y_pred: Sequence[int],
    positive_label: int = 1,
    negative_label: int = 0
) -> Dict[str, float]:
    """Confusion counts and rates for a binary classification.

    The positive class is ``positive_label`` regardless of which label
    appears first in the data.

    Args:
        y_true: True labels
        y_pred: Predicted labels
        positive_label: Label counted as positive
        negative_label: Label counted as negative

    Returns:
        Dictionary with counts, sensitivity, specificity, fpr, fnr and
        summary error rates
    """
    tn, fp, fn, tp = confusion_matrix(
        y_true, y_pred, labels=[negative_label, positive_label]
    ).ravel()

    sensitivity = safe_divide(tp, tp + fn)
    specificity = safe_divide(tn, tn + fp)
    total = tn + fp + fn + tp

    return {
        'tp': int(tp),
        'fp': int(fp),
        'tn': int(tn),
        'fn': int(fn),
        'sensitivity': sensitivity,
        'specificity': specificity,
        'fpr': 1.0 - specificity,
        'fnr': 1.0 - sensitivity,
        'misclassification_rate': safe_divide(fp + fn, total),
        # Share of predicted defaults that did not default, and vice versa
        'false_discovery_rate': safe_divide(fp, tp + fp),
        'false_omission_rate': safe_divide(fn, tn + fn),
    }


def misclassification_table(
    y_true: Sequence[int],
    prob: np.ndarray,
    cutoffs: Sequence[float] = DEFAULT_CUTOFFS
) -> pd.DataFrame:
    """Error rates at each probability cutoff, one row per cutoff."""
    rows = []
    for cutoff in cutoffs:
        metrics = confusion_metrics(y_true, classify(prob, cutoff))
        rows.append({'cutoff': float(cutoff), **metrics})
    return pd.DataFrame(rows).set_index('cutoff')


def roc_points(y_true: Sequence[int], prob: np.ndarray, positive_label: int = 1) -> Dict[str, Union[float, np.ndarray]]:
    """ROC curve over all thresholds plus summary statistics.

    Args:
        y_true: True binary labels
        prob: Predicted probabilities for the positive class
        positive_label: Label counted as positive

    Returns:
        Dictionary with fpr, tpr, thresholds, auc, ks_statistic and
        gini_coefficient
    """
    fpr, tpr, thresholds = roc_curve(y_true, prob, pos_label=positive_label)
    y_bin = (np.asarray(y_true) == positive_label).astype(int)
    auc = roc_auc_score(y_bin, prob)

    return {
        'fpr': fpr,
        'tpr': tpr,
        'thresholds': thresholds,
        'auc': float(auc),
        'ks_statistic': float(np.max(tpr - fpr)),
        'gini_coefficient': float(2 * auc - 1),
    }


@dataclass(frozen=True, eq=False)
class TrainTestResult:
    """Outcome of fitting on one half of the data and scoring the other."""

    schema: DesignSchema
    model: LassoLogisticModel
    criterion: str
    y_train: pd.Series
    y_test: pd.Series
    train_prob: np.ndarray
    test_prob: np.ndarray
    train_roc: Dict[str, Union[float, np.ndarray]]
    test_roc: Dict[str, Union[float, np.ndarray]]


def evaluate_train_test(
    records: pd.DataFrame,
    model: Optional[LassoLogisticModel] = None,
    criterion: Optional[str] = None,
    test_fraction: float = 0.5,
    random_state: Optional[int] = 42,
    outcome: str = 'Default'
) -> TrainTestResult:
    """Fit schema and model on a training split and score the held-out split.

    The design schema is fitted on the training rows only and the test rows
    pass through it unchanged, so both matrices share one column layout.

    Args:
        records: Recoded analysis records
        model: Unfitted model; defaults to an AICc-selected path without CV
        criterion: Selection rule used for prediction (model default if None)
        test_fraction: Share of rows held out
        random_state: Seed for the split
        outcome: Outcome column name

    Returns:
        TrainTestResult with probabilities and ROC curves for both splits
    """
    if model is None:
        model = LassoLogisticModel(n_folds=0, criterion='aicc')
    criterion = criterion or model.criterion

    train_df, test_df = create_random_split(records, test_fraction, random_state)

    builder = DesignMatrixBuilder(outcome=outcome)
    schema, X_train, y_train = builder.fit_transform(train_df)
    X_test = builder.transform(test_df, schema)
    y_test = outcome_vector(test_df, schema)

    model.fit(X_train, y_train)
    coef = model.coefficients(criterion)
    train_prob = predict_probability(coef, X_train)
    test_prob = predict_probability(coef, X_test)

    result = TrainTestResult(
        schema=schema,
        model=model,
        criterion=criterion,
        y_train=y_train,
        y_test=y_test,
        train_prob=train_prob,
        test_prob=test_prob,
        train_roc=roc_points(y_train, train_prob),
        test_roc=roc_points(y_test, test_prob),
    )
    logger.info(
        f"Train/test evaluation ({criterion}, {coef.n_nonzero} nonzero): "
        f"in-sample AUC {result.train_roc['auc']:.3f}, "
        f"out-of-sample AUC {result.test_roc['auc']:.3f}"
    )
    return result


class CreditRiskEvaluator:
    """Collects evaluation results for several samples of one analysis."""

    def __init__(self, cutoffs: Sequence[float] = DEFAULT_CUTOFFS):
        """Initialize the evaluator.

        Args:
            cutoffs: Probability cutoffs for the misclassification summary
        """
        self.cutoffs = tuple(cutoffs)
        self.results: Dict[str, Dict] = {}

    def evaluate_sample(self, name: str, y_true: Sequence[int], prob: np.ndarray) -> Dict:
        """Evaluate predictions for one sample (e.g. in-sample or test).

        Args:
            name: Label for the sample
            y_true: True binary labels
            prob: Predicted default probabilities

        Returns:
            Dictionary with ``roc`` and ``misclassification`` entries
        """
        results = {
            'n_obs': len(prob),
            'default_rate': float(np.mean(y_true)),
            'roc': roc_points(y_true, prob),
            'misclassification': misclassification_table(y_true, prob, self.cutoffs),
        }
        self.results[name] = results
        logger.info(f"Completed evaluation for {name}: AUC {results['roc']['auc']:.3f}")
        return results

    def create_comparison_table(self) -> pd.DataFrame:
        """Summary row per evaluated sample."""
        if not self.results:
            logger.warning("No evaluation results available")
            return pd.DataFrame()

        rows: List[Dict] = []
        for name, results in self.results.items():
            row = {
                'Sample': name,
                'N': results['n_obs'],
                'Default rate': results['default_rate'],
                'AUC': results['roc']['auc'],
                'KS': results['roc']['ks_statistic'],
                'Gini': results['roc']['gini_coefficient'],
            }
            for cutoff, metrics in results['misclassification'].iterrows():
                row[f'Misclass@{cutoff:g}'] = metrics['misclassification_rate']
            rows.append(row)

        return pd.DataFrame(rows)
