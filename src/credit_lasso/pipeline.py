"""End-to-end German Credit lasso analysis."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
from omegaconf import DictConfig

from credit_lasso.data.loader import GermanCreditLoader
from credit_lasso.features.design import DesignMatrixBuilder, DesignSchema
from credit_lasso.features.recoding import recode_german_credit
from credit_lasso.models.lasso import LassoLogisticModel
from credit_lasso.risk import reporting
from credit_lasso.risk.evaluation import CreditRiskEvaluator, TrainTestResult, evaluate_train_test
from credit_lasso.utils.helpers import format_percentage, set_deterministic_seeds

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class AnalysisResult:
    """Everything produced by one run of the analysis."""

    records: pd.DataFrame
    schema: DesignSchema
    model: LassoLogisticModel
    selection_counts: Dict[str, int]
    oos_r2: float
    in_sample_prob: np.ndarray
    train_test: TrainTestResult
    comparison: pd.DataFrame
    misclassification: pd.DataFrame
    artifacts: List[Path] = field(default_factory=list)


def load_records(config: DictConfig) -> pd.DataFrame:
    """Load raw records (file or synthetic) and recode them."""
    loader = GermanCreditLoader(config.data.path)
    if config.data.synthetic:
        raw = loader.generate_synthetic_data(
            n_samples=config.data.n_samples,
            random_state=config.data.random_state
        )
    else:
        raw = loader.load_data()
    return recode_german_credit(raw)


def build_model(model_config: DictConfig, random_state: int, holdout: bool = False) -> LassoLogisticModel:
    if holdout:
        return LassoLogisticModel(
            n_lambda=model_config.n_lambda,
            lambda_min_ratio=model_config.lambda_min_ratio,
            n_folds=0,
            standardize=model_config.standardize,
            criterion=model_config.holdout_criterion,
            random_state=random_state,
        )
    return LassoLogisticModel(
        n_lambda=model_config.n_lambda,
        lambda_min_ratio=model_config.lambda_min_ratio,
        n_folds=model_config.n_folds,
        standardize=model_config.standardize,
        criterion=model_config.criterion,
        random_state=random_state,
    )


def run_analysis(config: DictConfig) -> AnalysisResult:
    """Run the full analysis described by ``config``.

    Args:
        config: Configuration as returned by ``utils.helpers.load_config``

    Returns:
        AnalysisResult holding fitted objects, tables and artifact paths
    """
    seed = config.data.random_state
    set_deterministic_seeds(seed)

    logger.info("Loading data...")
    records = load_records(config)

    logger.info("Building design matrix...")
    builder = DesignMatrixBuilder(outcome='Default')
    schema, X, y = builder.fit_transform(records)

    logger.info("Fitting cross-validated lasso path...")
    model = build_model(config.model, seed).fit(X, y)
    counts = model.selection_counts()
    oos_r2 = model.oos_r2() if model.path_.has_cv else float('nan')
    in_sample_prob = model.predict_default_probability(X)

    evaluator = CreditRiskEvaluator(cutoffs=list(config.evaluation.cutoffs))
    in_sample = evaluator.evaluate_sample('full data (in-sample)', y, in_sample_prob)

    logger.info("Running train/test evaluation...")
    train_test = evaluate_train_test(
        records,
        model=build_model(config.model, seed, holdout=True),
        test_fraction=config.data.test_fraction,
        random_state=seed,
    )
    train_eval = evaluator.evaluate_sample('train half', train_test.y_train, train_test.train_prob)
    test_eval = evaluator.evaluate_sample('test half', train_test.y_test, train_test.test_prob)

    result = AnalysisResult(
        records=records,
        schema=schema,
        model=model,
        selection_counts=counts,
        oos_r2=oos_r2,
        in_sample_prob=in_sample_prob,
        train_test=train_test,
        comparison=evaluator.create_comparison_table(),
        misclassification=in_sample['misclassification'],
    )

    output_dir = Path(config.output.dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    if config.output.save_figures:
        result.artifacts.extend(
            _render_figures(result, train_eval, test_eval, output_dir)
        )
    report_path = output_dir / 'report.txt'
    reporting.write_report(_report_sections(result), report_path)
    result.artifacts.append(report_path)

    logger.info(f"Analysis complete. Results saved to {output_dir}")
    return result


def _render_figures(result: AnalysisResult, train_eval: Dict, test_eval: Dict,
                    output_dir: Path) -> List[Path]:
    path = result.model.path_
    figures = {
        'mosaic_history.png': lambda p: reporting.mosaic_plot(result.records, 'history', 'Default', save_path=p),
        'lasso_path.png': lambda p: reporting.plot_regularization_path(path, save_path=p),
        'cv_error.png': lambda p: reporting.plot_cv_error(path, save_path=p),
        'probability_boxplot.png': lambda p: reporting.plot_probability_boxplot(
            result.records['Default'], result.in_sample_prob, save_path=p),
        'roc_in_sample.png': lambda p: reporting.plot_roc(
            train_eval['roc'], 'In-sample ROC (train half)',
            cutoff_points=train_eval['misclassification'], save_path=p),
        'roc_out_of_sample.png': lambda p: reporting.plot_roc(
            test_eval['roc'], 'Out-of-sample ROC (test half)',
            cutoff_points=test_eval['misclassification'], save_path=p),
    }
    if not path.has_cv:
        del figures['cv_error.png']

    saved = []
    for name, render in figures.items():
        fig = render(output_dir / name)
        plt.close(fig)
        saved.append(output_dir / name)
    return saved


def _report_sections(result: AnalysisResult) -> Dict[str, str]:
    y = result.records['Default']
    overview = "\n".join([
        f"Records: {len(result.records)}",
        f"Default rate: {format_percentage(y.mean())}",
        f"Design columns: {result.schema.n_columns} "
        f"({len(result.schema.dropped)} zero-variance columns dropped)",
        f"Out-of-sample deviance R^2: {result.oos_r2:.4f}",
    ])
    return {
        'Overview': overview,
        'Nonzero coefficients by selection rule': reporting.format_selection_table(result.selection_counts),
        'In-sample misclassification by cutoff': reporting.format_misclassification_table(result.misclassification),
        'Sample comparison': result.comparison.to_string(index=False, float_format='%.4f'),
    }
