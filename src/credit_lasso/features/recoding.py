"""Recoding of the coded German Credit categoricals into analysis levels."""

import logging
from typing import Dict, List

import pandas as pd

logger = logging.getLogger(__name__)

HISTORY_MAP = {
    'A30': 'good',
    'A31': 'good',
    'A32': 'poor',
    'A33': 'poor',
    'A34': 'terrible',
}

# A47 (vacation) never occurs in the data and is left unmapped on purpose.
PURPOSE_MAP = {
    'A40': 'newcar',
    'A41': 'usedcar',
    'A42': 'goods/repair',
    'A43': 'goods/repair',
    'A44': 'goods/repair',
    'A45': 'goods/repair',
    'A46': 'edu',
    'A48': 'edu',
    'A49': 'biz',
    'A410': 'biz',
}

FOREIGN_MAP = {
    'A201': 'foreign',
    'A202': 'german',
}

RENT_MAP = {
    'A152': 'FALSE',
    'A153': 'FALSE',
    'A151': 'TRUE',
}

ANALYSIS_COLUMNS = [
    'Default', 'duration', 'amount', 'installment', 'age',
    'history', 'purpose', 'foreign', 'rent'
]


class UnmappedLevelError(ValueError):
    """Raised when a categorical code has no entry in the recoding map."""


class CategoryRecoder:
    """Map raw categorical codes onto a (possibly smaller) set of levels."""

    def __init__(self, column: str, mapping: Dict[str, str]):
        """Initialize the recoder.

        Args:
            column: Name of the column being recoded (used in error messages)
            mapping: Input level -> output category; several inputs may share
                one output
        """
        self.column = column
        self.mapping = dict(mapping)

    @property
    def categories(self) -> List[str]:
        """Output categories in first-appearance order of the mapping."""
        return list(dict.fromkeys(self.mapping.values()))

    def recode(self, values: pd.Series) -> pd.Series:
        """Recode a series of raw codes.

        Args:
            values: Raw categorical codes

        Returns:
            Categorical series over ``self.categories``

        Raises:
            UnmappedLevelError: If any code is missing from the mapping
        """
        codes = values.astype(str)
        unmapped = sorted(set(codes.unique()) - set(self.mapping))
        if unmapped:
            raise UnmappedLevelError(
                f"Column '{self.column}' has levels without a mapping: "
                f"{unmapped}"
            )

        recoded = pd.Categorical(codes.map(self.mapping), categories=self.categories)
        return pd.Series(recoded, index=values.index, name=values.name)


def recode_german_credit(df: pd.DataFrame) -> pd.DataFrame:
    """Recode raw German Credit records into the analysis frame.

    History collapses into good/poor/terrible, purpose into five loan
    purposes, foreign-worker status is relabelled and housing becomes a
    renter indicator.

    Args:
        df: Raw records (see ``data.loader.RAW_COLUMNS``)

    Returns:
        New DataFrame with ``ANALYSIS_COLUMNS``
    """
    required = ['Default', 'duration', 'amount', 'installment', 'age',
                'history', 'purpose', 'foreign', 'housing']
    missing = [col for col in required if col not in df.columns]
    if missing:
        raise KeyError(f"Cannot recode, missing columns: {missing}")

    recoded = df[['Default', 'duration', 'amount', 'installment', 'age']].copy()
    recoded['history'] = CategoryRecoder('history', HISTORY_MAP).recode(df['history'])
    recoded['purpose'] = CategoryRecoder('purpose', PURPOSE_MAP).recode(df['purpose'])
    recoded['foreign'] = CategoryRecoder('foreign', FOREIGN_MAP).recode(df['foreign'])
    recoded['rent'] = CategoryRecoder('rent', RENT_MAP).recode(df['housing'])

    logger.info(f"Recoded {len(recoded)} records")
    return recoded[ANALYSIS_COLUMNS]
