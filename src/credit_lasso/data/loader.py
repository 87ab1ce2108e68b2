"""Data loading and splitting for the German Credit analysis."""

import logging
from pathlib import Path
from typing import Optional, Tuple, Union

import numpy as np
import pandas as pd
from sklearn.model_selection import train_test_split

logger = logging.getLogger(__name__)

OUTCOME_COLUMN = 'Default'

RAW_COLUMNS = [
    'Default', 'duration', 'amount', 'installment', 'age',
    'history', 'purpose', 'foreign', 'housing'
]

# Level frequencies of the published data set, used to make the synthetic
# sample look like the real one.
HISTORY_LEVELS = {'A30': 40, 'A31': 49, 'A32': 530, 'A33': 88, 'A34': 293}
PURPOSE_LEVELS = {
    'A40': 234, 'A41': 103, 'A42': 181, 'A43': 280, 'A44': 12,
    'A45': 22, 'A46': 50, 'A48': 9, 'A49': 97, 'A410': 12
}
FOREIGN_LEVELS = {'A201': 963, 'A202': 37}
HOUSING_LEVELS = {'A151': 179, 'A152': 713, 'A153': 108}


class GermanCreditLoader:
    """Loader for the German Credit CSV file."""

    def __init__(self, data_path: Union[str, Path] = "data/credit.csv"):
        """Initialize the loader.

        Args:
            data_path: Path to the delimited credit file (header row required)
        """
        self.data_path = Path(data_path)

    def load_data(self, sep: str = ',') -> pd.DataFrame:
        """Read the credit file into memory.

        Args:
            sep: Field delimiter

        Returns:
            Raw records with the columns the analysis needs

        Raises:
            FileNotFoundError: If the file does not exist
            KeyError: If a required column is missing from the header
        """
        if not self.data_path.exists():
            raise FileNotFoundError(f"Credit data file not found: {self.data_path}")

        df = pd.read_csv(self.data_path, sep=sep)

        missing = [col for col in RAW_COLUMNS if col not in df.columns]
        if missing:
            raise KeyError(f"Credit data is missing required columns: {missing}")

        logger.info(f"Loaded {len(df)} records from {self.data_path}")
        return df[RAW_COLUMNS].copy()

    def generate_synthetic_data(
        self,
        n_samples: int = 1000,
        random_state: Optional[int] = 42
    ) -> pd.DataFrame:
        """Generate raw-coded records shaped like the German Credit data.

        Codes follow the original data dictionary (A30..A34 for history,
        A40..A410 for purpose, and so on). Applicants with a "critical"
        history (A34) default less often, as in the real sample.

        Args:
            n_samples: Number of records
            random_state: Seed for the generator

        Returns:
            DataFrame with ``RAW_COLUMNS``
        """
        rng = np.random.default_rng(random_state)

        def draw(levels):
            codes = list(levels)
            weights = np.array(list(levels.values()), dtype=float)
            return rng.choice(codes, size=n_samples, p=weights / weights.sum())

        df = pd.DataFrame({
            'duration': rng.integers(4, 73, n_samples),
            'amount': np.round(rng.lognormal(mean=7.8, sigma=0.75, size=n_samples)).astype(int),
            'installment': rng.integers(1, 5, n_samples),
            'age': rng.integers(19, 76, n_samples),
            'history': draw(HISTORY_LEVELS),
            'purpose': draw(PURPOSE_LEVELS),
            'foreign': draw(FOREIGN_LEVELS),
            'housing': draw(HOUSING_LEVELS),
        })

        history_effect = df['history'].map(
            {'A30': 1.2, 'A31': 1.0, 'A32': 0.1, 'A33': 0.0, 'A34': -0.9}
        )
        purpose_effect = df['purpose'].map({'A40': 0.4, 'A41': -0.8, 'A46': 0.5}).fillna(0.0)
        logit = (
            -1.4
            + 0.03 * (df['duration'] - 20)
            + 0.15 * (df['installment'] - 3)
            - 0.015 * (df['age'] - 35)
            + history_effect
            + purpose_effect
            + np.where(df['housing'] == 'A151', 0.4, 0.0)
            - np.where(df['foreign'] == 'A202', 0.9, 0.0)
        )
        prob = 1.0 / (1.0 + np.exp(-logit))
        df[OUTCOME_COLUMN] = rng.binomial(1, prob)

        logger.info(f"Generated {n_samples} synthetic credit records "
                    f"(default rate {df[OUTCOME_COLUMN].mean():.2%})")
        return df[RAW_COLUMNS]


def create_random_split(
    df: pd.DataFrame,
    test_fraction: float = 0.5,
    random_state: Optional[int] = 42
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """Split records at random into training and test sets.

    Row labels are preserved, so the two parts are disjoint and their
    union is the original frame.

    Args:
        df: Records to split
        test_fraction: Share of rows held out
        random_state: Seed for reproducibility

    Returns:
        Tuple of (train_df, test_df)
    """
    train_df, test_df = train_test_split(
        df, test_size=test_fraction, random_state=random_state, shuffle=True
    )
    logger.info(f"Split {len(df)} records into {len(train_df)} train / {len(test_df)} test")
    return train_df, test_df
