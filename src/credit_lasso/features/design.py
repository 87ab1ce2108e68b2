"""Interaction-expanded design matrix construction.

The builder expands every categorical column into one indicator per
observed level (no baseline level is dropped), appends the product of every
pair of predictor columns, squares included, and removes columns that are
constant over the training rows. The resulting column layout is recorded in a
``DesignSchema`` which is reapplied unchanged to held-out data.
"""

import logging
from dataclasses import dataclass
from itertools import combinations_with_replacement
from typing import Dict, List, Optional, Tuple

import numpy as np
import pandas as pd
from pandas.api.types import is_numeric_dtype

logger = logging.getLogger(__name__)


class SchemaMismatchError(KeyError):
    """Raised when data lacks a column that a fitted schema requires."""


@dataclass(frozen=True)
class DesignSchema:
    """Frozen description of a fitted design matrix."""

    outcome: str
    predictors: Tuple[str, ...]
    numeric: Tuple[str, ...]
    levels: Tuple[Tuple[str, Tuple[str, ...]], ...]
    columns: Tuple[str, ...]
    dropped: Tuple[str, ...] = ()
    interactions: bool = True

    @property
    def categorical_levels(self) -> Dict[str, Tuple[str, ...]]:
        return dict(self.levels)

    @property
    def n_columns(self) -> int:
        return len(self.columns)


def indicator_name(column: str, level: str) -> str:
    return f"{column}_{level}"


def interaction_name(left: str, right: str) -> str:
    if left == right:
        return f"{left}^2"
    return f"{left}:{right}"


class DesignMatrixBuilder:
    """Build one-hot, pairwise-interaction design matrices."""

    def __init__(self, outcome: str = 'Default', interactions: bool = True):
        """Initialize the builder.

        Args:
            outcome: Name of the binary outcome column, excluded from predictors
            interactions: Whether to append pairwise products
        """
        self.outcome = outcome
        self.interactions = interactions

    def fit(self, df: pd.DataFrame) -> DesignSchema:
        """Determine the design schema from training records.

        Args:
            df: Training records including the outcome column

        Returns:
            The fitted schema
        """
        if self.outcome not in df.columns:
            raise SchemaMismatchError(f"Outcome column '{self.outcome}' not found")

        predictors = [col for col in df.columns if col != self.outcome]
        numeric = [col for col in predictors if self._is_numeric(df[col])]
        levels = {
            col: self._observed_levels(df[col])
            for col in predictors if col not in numeric
        }

        schema = DesignSchema(
            outcome=self.outcome,
            predictors=tuple(predictors),
            numeric=tuple(numeric),
            levels=tuple((col, tuple(lv)) for col, lv in levels.items()),
            columns=(),
            interactions=self.interactions,
        )
        full = self._expand(df, schema)

        zero_var_cols = list(full.columns[full.nunique() <= 1])
        dropped = set(zero_var_cols)
        kept = [col for col in full.columns if col not in dropped]

        schema = DesignSchema(
            outcome=schema.outcome,
            predictors=schema.predictors,
            numeric=schema.numeric,
            levels=schema.levels,
            columns=tuple(kept),
            dropped=tuple(zero_var_cols),
            interactions=self.interactions,
        )

        logger.info(
            f"Fitted design schema: {len(predictors)} predictors -> "
            f"{full.shape[1]} columns, {len(zero_var_cols)} zero-variance dropped, "
            f"{schema.n_columns} kept"
        )
        return schema

    def transform(self, df: pd.DataFrame, schema: DesignSchema) -> pd.DataFrame:
        """Apply a fitted schema to records.

        Levels not seen when the schema was fitted get all-zero indicators;
        no column outside ``schema.columns`` is ever produced.

        Args:
            df: Records containing at least the schema's predictors
            schema: Schema returned by ``fit``

        Returns:
            Design matrix with exactly ``schema.columns``, in order
        """
        missing = [col for col in schema.predictors if col not in df.columns]
        if missing:
            raise SchemaMismatchError(f"Data is missing columns required by the schema: {missing}")

        full = self._expand(df, schema)
        return full.loc[:, list(schema.columns)]

    def fit_transform(self, df: pd.DataFrame) -> Tuple[DesignSchema, pd.DataFrame, pd.Series]:
        """Fit a schema and return it with the design matrix and outcome."""
        schema = self.fit(df)
        return schema, self.transform(df, schema), outcome_vector(df, schema)

    def _expand(self, df: pd.DataFrame, schema: DesignSchema) -> pd.DataFrame:
        """One-hot expansion followed by pairwise products."""
        levels = schema.categorical_levels
        base: Dict[str, np.ndarray] = {}

        for col in schema.predictors:
            if col in levels:
                values = df[col].astype(str)
                unseen = sorted(set(values.unique()) - set(levels[col]))
                if unseen:
                    logger.warning(f"Column '{col}' has levels unseen at fit time: {unseen}")
                for level in levels[col]:
                    base[indicator_name(col, level)] = (values == level).to_numpy(dtype=float)
            else:
                values = pd.to_numeric(df[col], errors='raise')
                base[col] = values.to_numpy(dtype=float)

        columns = dict(base)
        if schema.interactions:
            for left, right in combinations_with_replacement(list(base), 2):
                columns[interaction_name(left, right)] = base[left] * base[right]

        return pd.DataFrame(columns, index=df.index)

    @staticmethod
    def _is_numeric(series: pd.Series) -> bool:
        return is_numeric_dtype(series) and not isinstance(series.dtype, pd.CategoricalDtype)

    @staticmethod
    def _observed_levels(series: pd.Series) -> List[str]:
        observed = set(series.dropna().astype(str).unique())
        if isinstance(series.dtype, pd.CategoricalDtype):
            return [str(lv) for lv in series.cat.categories if str(lv) in observed]
        return sorted(observed)


def outcome_vector(df: pd.DataFrame, schema: Optional[DesignSchema] = None,
                   outcome: str = 'Default') -> pd.Series:
    """Extract the numeric outcome column.

    Raises:
        SchemaMismatchError: If the outcome column is absent
        ValueError: If the outcome is not numeric or not coded 0/1
    """
    name = schema.outcome if schema is not None else outcome
    if name not in df.columns:
        raise SchemaMismatchError(f"Outcome column '{name}' not found")
    y = df[name]
    if not is_numeric_dtype(y) or isinstance(y.dtype, pd.CategoricalDtype):
        raise ValueError(f"Outcome column '{name}' must be numeric, got dtype {y.dtype}")
    invalid = sorted(set(y.unique()) - {0, 1})
    if invalid:
        raise ValueError(f"Outcome column '{name}' must be coded 0/1, found values {invalid}")
    return y.astype(int)
