"""L1-penalized logistic regression paths with cross-validation.

The penalized fits themselves are delegated to scikit-learn's liblinear
solver. This module walks a decreasing penalty grid, records the path on the
original feature scale, estimates out-of-fold deviance with K-fold
cross-validation and selects a point on the path by one of five rules.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from sklearn.linear_model import LogisticRegression
from sklearn.model_selection import KFold
from sklearn.svm import l1_min_c

from credit_lasso.features.design import SchemaMismatchError

logger = logging.getLogger(__name__)

CRITERIA = ('min', '1se', 'aicc', 'aic', 'bic')


def _sigmoid(z: np.ndarray) -> np.ndarray:
    z = np.clip(z, -500, 500)
    return 1.0 / (1.0 + np.exp(-z))


def binomial_deviance(y: np.ndarray, eta: np.ndarray) -> float:
    """Deviance (-2 log-likelihood) of 0/1 outcomes under linear predictor ``eta``."""
    return float(2.0 * np.sum(np.logaddexp(0.0, eta) - y * eta))


@dataclass(frozen=True, eq=False)
class RegularizationPath:
    """Coefficients fitted over a decreasing grid of penalties."""

    lambdas: np.ndarray
    intercepts: np.ndarray
    coefs: np.ndarray
    deviance: np.ndarray
    n_obs: int
    feature_names: Tuple[str, ...]
    cv_mean: Optional[np.ndarray] = None
    cv_se: Optional[np.ndarray] = None
    n_folds: int = 0

    @property
    def n_lambda(self) -> int:
        return len(self.lambdas)

    @property
    def df(self) -> np.ndarray:
        """Degrees of freedom: nonzero coefficients plus the intercept."""
        return np.count_nonzero(self.coefs, axis=1) + 1

    @property
    def has_cv(self) -> bool:
        return self.cv_mean is not None

    def aic(self) -> np.ndarray:
        return self.deviance + 2.0 * self.df

    def aicc(self) -> np.ndarray:
        df = self.df.astype(float)
        denom = self.n_obs - df - 1.0
        penalty = np.full_like(df, np.inf)
        ok = denom > 0
        penalty[ok] = 2.0 * df[ok] * self.n_obs / denom[ok]
        return self.deviance + penalty

    def bic(self) -> np.ndarray:
        return self.deviance + np.log(self.n_obs) * self.df


@dataclass(frozen=True, eq=False)
class CoefficientVector:
    """One point on a regularization path."""

    intercept: float
    coef: pd.Series
    penalty: float
    criterion: str
    index: int = field(default=-1)

    @property
    def n_nonzero(self) -> int:
        """Nonzero parameters, counting the intercept when it is nonzero."""
        return int(np.count_nonzero(self.coef.to_numpy())) + int(self.intercept != 0)

    @property
    def selected_features(self) -> List[str]:
        return list(self.coef.index[self.coef.to_numpy() != 0])

    def linear_predictor(self, X: pd.DataFrame) -> np.ndarray:
        missing = [col for col in self.coef.index if col not in X.columns]
        if missing:
            raise SchemaMismatchError(
                f"Design matrix is missing {len(missing)} model columns, e.g. {missing[:5]}"
            )
        X_arr = X.loc[:, list(self.coef.index)].to_numpy(dtype=float)
        return self.intercept + X_arr @ self.coef.to_numpy()

    def predict_proba(self, X: pd.DataFrame) -> np.ndarray:
        """Probability of the positive class for each row of ``X``."""
        return _sigmoid(self.linear_predictor(X))


def _check_binary(y: np.ndarray) -> None:
    classes = np.unique(y)
    if not np.isin(classes, [0, 1]).all():
        raise ValueError(f"Outcome must be coded 0/1, found values {classes.tolist()}")
    if len(classes) < 2:
        raise ValueError("Outcome has a single class; cannot fit a logistic model")


def _standardize(X: np.ndarray, standardize: bool) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    if not standardize:
        return X, np.zeros(X.shape[1]), np.ones(X.shape[1])
    mean = X.mean(axis=0)
    scale = X.std(axis=0)
    scale[scale == 0] = 1.0
    return (X - mean) / scale, mean, scale


def _penalty_grid(X_std: np.ndarray, y: np.ndarray, n_lambda: int,
                  lambda_min_ratio: float) -> np.ndarray:
    """Decreasing penalties starting at the smallest all-zero penalty.

    The intercept is unpenalized, so the bound is taken on centered columns
    whether or not they were standardized.
    """
    n = X_std.shape[0]
    centered = X_std - X_std.mean(axis=0)
    c_min = l1_min_c(centered, y, loss="log", fit_intercept=False)
    Cs = c_min * np.logspace(0, np.log10(1.0 / lambda_min_ratio), n_lambda)
    return 1.0 / (Cs * n)


def _walk_path(
    X_std: np.ndarray,
    y: np.ndarray,
    lambdas: np.ndarray,
    tol: float,
    max_iter: int
) -> Tuple[np.ndarray, np.ndarray]:
    n = X_std.shape[0]
    intercepts = np.empty(len(lambdas))
    coefs = np.empty((len(lambdas), X_std.shape[1]))

    clf = LogisticRegression(
        penalty='l1',
        solver='liblinear',
        tol=tol,
        max_iter=max_iter,
        intercept_scaling=10000.0,
    )
    for i, lam in enumerate(lambdas):
        clf.set_params(C=1.0 / (lam * n))
        clf.fit(X_std, y)
        intercepts[i] = clf.intercept_[0]
        coefs[i] = clf.coef_.ravel()

    return intercepts, coefs


def fit_path(
    X: pd.DataFrame,
    y: Sequence[int],
    family: str = 'binomial',
    n_lambda: int = 100,
    lambda_min_ratio: float = 0.01,
    standardize: bool = True,
    lambdas: Optional[np.ndarray] = None,
    tol: float = 1e-5,
    max_iter: int = 10000
) -> RegularizationPath:
    """Fit an L1 logistic regression over a decreasing penalty grid.

    Args:
        X: Design matrix
        y: Binary outcome coded 0/1
        family: Response family; only ``'binomial'`` is supported
        n_lambda: Number of penalties on the grid
        lambda_min_ratio: Smallest penalty as a fraction of the largest
        standardize: Scale columns to unit variance before penalizing
        lambdas: Explicit decreasing penalty grid (overrides the automatic one)
        tol: Solver tolerance
        max_iter: Solver iteration cap

    Returns:
        RegularizationPath with coefficients on the original scale
    """
    if family != 'binomial':
        raise ValueError(f"Unsupported family '{family}'; only 'binomial' is available")

    X_arr = np.asarray(X, dtype=float)
    y_arr = np.asarray(y, dtype=int)
    _check_binary(y_arr)

    X_std, mean, scale = _standardize(X_arr, standardize)
    if lambdas is None:
        lambdas = _penalty_grid(X_std, y_arr, n_lambda, lambda_min_ratio)
    lambdas = np.asarray(lambdas, dtype=float)

    intercepts_std, coefs_std = _walk_path(X_std, y_arr, lambdas, tol, max_iter)

    coefs = coefs_std / scale
    intercepts = intercepts_std - coefs_std @ (mean / scale)
    eta = intercepts[:, None] + coefs @ X_arr.T
    deviance = np.array([binomial_deviance(y_arr, row) for row in eta])

    feature_names = tuple(X.columns) if isinstance(X, pd.DataFrame) else tuple(
        f"x{j}" for j in range(X_arr.shape[1])
    )
    path = RegularizationPath(
        lambdas=lambdas,
        intercepts=intercepts,
        coefs=coefs,
        deviance=deviance,
        n_obs=len(y_arr),
        feature_names=feature_names,
    )
    logger.info(
        f"Fitted lasso path: {path.n_lambda} penalties "
        f"[{lambdas[0]:.4g} .. {lambdas[-1]:.4g}], "
        f"up to {int(path.df.max()) - 1} nonzero coefficients"
    )
    return path


def cross_validate_path(
    X: pd.DataFrame,
    y: Sequence[int],
    n_folds: int = 5,
    random_state: Optional[int] = None,
    family: str = 'binomial',
    **path_kwargs
) -> RegularizationPath:
    """Fit the full-data path and estimate out-of-fold deviance per penalty.

    Every fold is fitted over the full-data penalty grid so errors line up
    by penalty. The error for a penalty is the mean out-of-fold deviance per
    observation and its standard error is the fold spread over sqrt(K).

    Raises:
        ValueError: If a fold's training rows contain a single class
    """
    if n_folds < 2:
        raise ValueError(f"Cross-validation needs at least 2 folds, got {n_folds}")

    X_df = X if isinstance(X, pd.DataFrame) else pd.DataFrame(np.asarray(X, dtype=float))
    y_arr = np.asarray(y, dtype=int)
    path = fit_path(X_df, y_arr, family=family, **path_kwargs)

    fold_kwargs = {k: v for k, v in path_kwargs.items() if k not in ('n_lambda', 'lambda_min_ratio', 'lambdas')}
    kfold = KFold(n_splits=n_folds, shuffle=True, random_state=random_state)
    oos = np.empty((n_folds, path.n_lambda))

    for k, (train_idx, val_idx) in enumerate(kfold.split(X_df)):
        y_train = y_arr[train_idx]
        if len(np.unique(y_train)) < 2:
            raise ValueError(f"Fold {k + 1} training rows contain a single outcome class")

        fold_path = fit_path(
            X_df.iloc[train_idx], y_train, family=family,
            lambdas=path.lambdas, **fold_kwargs
        )
        X_val = X_df.iloc[val_idx].to_numpy(dtype=float)
        eta = fold_path.intercepts[:, None] + fold_path.coefs @ X_val.T
        oos[k] = [binomial_deviance(y_arr[val_idx], row) / len(val_idx) for row in eta]
        logger.debug(f"Fold {k + 1}/{n_folds}: min OOS deviance {oos[k].min():.4f}")

    cv_mean = oos.mean(axis=0)
    cv_se = oos.std(axis=0, ddof=1) / np.sqrt(n_folds)
    logger.info(f"Cross-validated path over {n_folds} folds: min mean deviance {cv_mean.min():.4f}")
    return replace(path, cv_mean=cv_mean, cv_se=cv_se, n_folds=n_folds)


def selection_index(path: RegularizationPath, criterion: str) -> int:
    """Index on the path chosen by ``criterion``."""
    criterion = criterion.lower()
    if criterion in ('min', '1se'):
        if not path.has_cv:
            raise ValueError(f"Criterion '{criterion}' requires a cross-validated path")
        idx_min = int(np.argmin(path.cv_mean))
        if criterion == 'min':
            return idx_min
        # Largest penalty within one standard error of the minimum
        threshold = path.cv_mean[idx_min] + path.cv_se[idx_min]
        return int(np.flatnonzero(path.cv_mean <= threshold).min())
    if criterion == 'aicc':
        return int(np.argmin(path.aicc()))
    if criterion == 'aic':
        return int(np.argmin(path.aic()))
    if criterion == 'bic':
        return int(np.argmin(path.bic()))
    raise ValueError(f"Unknown selection criterion '{criterion}'; expected one of {CRITERIA}")


def select(path: RegularizationPath, criterion: str = 'min') -> CoefficientVector:
    """Pick one coefficient vector off a regularization path."""
    idx = selection_index(path, criterion)
    return CoefficientVector(
        intercept=float(path.intercepts[idx]),
        coef=pd.Series(path.coefs[idx], index=list(path.feature_names)),
        penalty=float(path.lambdas[idx]),
        criterion=criterion.lower(),
        index=idx,
    )


class LassoLogisticModel:
    """Lasso logistic regression credit model."""

    def __init__(
        self,
        n_lambda: int = 100,
        lambda_min_ratio: float = 0.01,
        n_folds: int = 5,
        standardize: bool = True,
        criterion: str = 'min',
        random_state: Optional[int] = 42
    ):
        """Initialize the model.

        Args:
            n_lambda: Number of penalties on the path
            lambda_min_ratio: Smallest penalty as a fraction of the largest
            n_folds: Cross-validation folds; 0 fits the path without CV
            standardize: Standardize columns before penalizing
            criterion: Default selection rule used for prediction
            random_state: Seed for fold assignment
        """
        if n_folds == 0 and criterion in ('min', '1se'):
            raise ValueError(f"Criterion '{criterion}' needs n_folds >= 2")
        self.n_lambda = n_lambda
        self.lambda_min_ratio = lambda_min_ratio
        self.n_folds = n_folds
        self.standardize = standardize
        self.criterion = criterion
        self.random_state = random_state
        self.path_: Optional[RegularizationPath] = None

    @property
    def is_fitted(self) -> bool:
        return self.path_ is not None

    def fit(self, X: pd.DataFrame, y: Sequence[int]) -> 'LassoLogisticModel':
        path_kwargs = dict(
            n_lambda=self.n_lambda,
            lambda_min_ratio=self.lambda_min_ratio,
            standardize=self.standardize,
        )
        if self.n_folds:
            self.path_ = cross_validate_path(
                X, y, n_folds=self.n_folds, random_state=self.random_state, **path_kwargs
            )
        else:
            self.path_ = fit_path(X, y, **path_kwargs)
        return self

    def _check_fitted(self) -> RegularizationPath:
        if self.path_ is None:
            raise ValueError("Model must be fitted before use")
        return self.path_

    def coefficients(self, criterion: Optional[str] = None) -> CoefficientVector:
        return select(self._check_fitted(), criterion or self.criterion)

    def predict_default_probability(self, X: pd.DataFrame, criterion: Optional[str] = None) -> np.ndarray:
        """Predicted probability of default for each row."""
        return self.coefficients(criterion).predict_proba(X)

    def predict(self, X: pd.DataFrame, cutoff: float = 0.5, criterion: Optional[str] = None) -> np.ndarray:
        return (self.predict_default_probability(X, criterion) >= cutoff).astype(int)

    def selection_counts(self) -> Dict[str, int]:
        """Nonzero parameter counts for each available selection rule."""
        path = self._check_fitted()
        criteria = CRITERIA if path.has_cv else CRITERIA[2:]
        return {name: select(path, name).n_nonzero for name in criteria}

    def oos_r2(self) -> float:
        """Out-of-sample deviance R^2 at the CV-minimizing penalty.

        Relative to the null model at the top of the path.
        """
        path = self._check_fitted()
        if not path.has_cv:
            raise ValueError("Out-of-sample R^2 requires a cross-validated path")
        idx = int(np.argmin(path.cv_mean))
        return float(1.0 - path.cv_mean[idx] / path.cv_mean[0])
