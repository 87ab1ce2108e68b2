"""Tables and figures for the credit analysis.

Everything here renders already-computed results; nothing is fitted or
estimated in this module.
"""

import logging
from pathlib import Path
from typing import Dict, Mapping, Optional, Sequence, Union

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns

from credit_lasso.models.lasso import RegularizationPath, selection_index

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def _finish(fig: plt.Figure, save_path: Optional[PathLike]) -> plt.Figure:
    fig.tight_layout()
    if save_path:
        fig.savefig(save_path, dpi=300, bbox_inches='tight')
        logger.info(f"Saved figure to {save_path}")
    return fig


def mosaic_plot(
    df: pd.DataFrame,
    x: str = 'history',
    y: str = 'Default',
    colors: Sequence[str] = ('lightgrey', 'red'),
    save_path: Optional[PathLike] = None
) -> plt.Figure:
    """Mosaic of ``y`` within each level of ``x``.

    Bar widths are proportional to the frequency of each ``x`` level and
    bar segments to the share of each ``y`` value within it.
    """
    counts = pd.crosstab(df[x], df[y])
    counts = counts.loc[counts.sum(axis=1) > 0]
    widths = counts.sum(axis=1) / counts.to_numpy().sum()
    shares = counts.div(counts.sum(axis=1), axis=0)

    fig, ax = plt.subplots(figsize=(8, 6))
    left = 0.0
    for level, width in widths.items():
        bottom = 0.0
        for j, value in enumerate(shares.columns):
            height = shares.loc[level, value]
            ax.bar(left, height, width=width * 0.98, bottom=bottom, align='edge',
                   color=colors[j % len(colors)], edgecolor='white',
                   label=f"{y}={value}" if left == 0.0 else None)
            bottom += height
        ax.text(left + width / 2, -0.03, str(level), ha='center', va='top')
        left += width

    ax.set_xlim(0, 1)
    ax.set_ylim(0, 1)
    ax.set_xticks([])
    ax.set_xlabel(x, labelpad=20)
    ax.set_ylabel(f"share of {y}")
    ax.legend(loc='upper right')
    return _finish(fig, save_path)


def plot_regularization_path(
    path: RegularizationPath,
    markers: Sequence[str] = ('aicc', 'min'),
    save_path: Optional[PathLike] = None
) -> plt.Figure:
    """Coefficient traces against log penalty, with selected penalties marked."""
    fig, ax = plt.subplots(figsize=(10, 6))
    log_lambda = np.log(path.lambdas)
    ax.plot(log_lambda, path.coefs, linewidth=0.8)

    for name in markers:
        if name in ('min', '1se') and not path.has_cv:
            continue
        idx = selection_index(path, name)
        ax.axvline(log_lambda[idx], linestyle='--', color='grey', alpha=0.7)
        ax.text(log_lambda[idx], ax.get_ylim()[1], name, ha='center', va='bottom', fontsize=9)

    ax.set_xlabel('log lambda')
    ax.set_ylabel('coefficient')
    ax.set_title(f'Lasso path ({len(path.feature_names)} candidate features)')
    ax.grid(True, alpha=0.3)
    return _finish(fig, save_path)


def plot_cv_error(path: RegularizationPath, save_path: Optional[PathLike] = None) -> plt.Figure:
    """Mean out-of-fold deviance with one-standard-error bars."""
    if not path.has_cv:
        raise ValueError("Path has no cross-validation results to plot")

    fig, ax = plt.subplots(figsize=(10, 6))
    log_lambda = np.log(path.lambdas)
    ax.errorbar(log_lambda, path.cv_mean, yerr=path.cv_se, fmt='o', markersize=3,
                color='red', ecolor='lightgrey')
    for name in ('min', '1se'):
        ax.axvline(log_lambda[selection_index(path, name)], linestyle='--', color='grey', alpha=0.7)

    ax.set_xlabel('log lambda')
    ax.set_ylabel('binomial deviance')
    ax.set_title(f'{path.n_folds}-fold cross-validation')
    ax.grid(True, alpha=0.3)
    return _finish(fig, save_path)


def plot_probability_boxplot(
    y_true: Sequence[int],
    prob: np.ndarray,
    save_path: Optional[PathLike] = None
) -> plt.Figure:
    """Boxplot of fitted default probability by observed class."""
    data = pd.DataFrame({'default': np.asarray(y_true).astype(str), 'prob': np.asarray(prob)})

    fig, ax = plt.subplots(figsize=(6, 6))
    sns.boxplot(data=data, x='default', y='prob', hue='default',
                palette=['pink', 'dodgerblue'], dodge=False, ax=ax)
    if ax.get_legend() is not None:
        ax.get_legend().remove()

    ax.set_xlabel('default')
    ax.set_ylabel('prob of default')
    return _finish(fig, save_path)


def plot_roc(
    roc: Mapping[str, Union[float, np.ndarray]],
    title: str = 'ROC curve',
    cutoff_points: Optional[pd.DataFrame] = None,
    save_path: Optional[PathLike] = None
) -> plt.Figure:
    """ROC curve, optionally marking the operating points of given cutoffs.

    Args:
        roc: Output of ``evaluation.roc_points``
        title: Plot title
        cutoff_points: Misclassification table indexed by cutoff
        save_path: Optional path to save the plot
    """
    fig, ax = plt.subplots(figsize=(7, 7))
    ax.plot(roc['fpr'], roc['tpr'], color='navy', linewidth=2,
            label=f"AUC = {roc['auc']:.3f}")
    ax.plot([0, 1], [0, 1], 'k--', alpha=0.5)

    if cutoff_points is not None:
        palette = sns.color_palette('Set1', len(cutoff_points))
        for color, (cutoff, row) in zip(palette, cutoff_points.iterrows()):
            ax.scatter(row['fpr'], row['sensitivity'], s=80, color=color, zorder=3,
                       label=f'p = {cutoff:g}')

    ax.set_xlabel('False Positive Rate (1 - specificity)')
    ax.set_ylabel('True Positive Rate (sensitivity)')
    ax.set_title(title)
    ax.legend(loc='lower right')
    ax.grid(True, alpha=0.3)
    return _finish(fig, save_path)


def format_selection_table(counts: Mapping[str, int]) -> str:
    """Nonzero coefficient count for each selection rule, as text."""
    table = pd.DataFrame({'criterion': list(counts), 'nonzero': list(counts.values())})
    return table.to_string(index=False)


def format_misclassification_table(table: pd.DataFrame) -> str:
    columns = ['sensitivity', 'specificity', 'fpr', 'fnr',
               'misclassification_rate', 'false_discovery_rate', 'false_omission_rate']
    return table[columns].to_string(float_format='%.3f')


def write_report(sections: Dict[str, str], output_path: PathLike) -> None:
    """Write titled text sections to a report file.

    Args:
        sections: Section title -> preformatted body
        output_path: Path to save the report
    """
    with open(output_path, 'w') as f:
        f.write("German Credit - Lasso Logistic Regression Report\n")
        f.write("=" * 60 + "\n\n")

        for title, body in sections.items():
            f.write(f"{title}:\n")
            f.write("-" * 40 + "\n")
            f.write(body.rstrip() + "\n\n")

    logger.info(f"Generated report: {output_path}")
