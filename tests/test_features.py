"""Tests for data loading, recoding and design matrix construction."""

import pytest
import numpy as np
import pandas as pd
from pathlib import Path
import sys

# Add src to path
sys.path.append(str(Path(__file__).parent.parent / "src"))

from credit_lasso.data.loader import GermanCreditLoader, RAW_COLUMNS, create_random_split
from credit_lasso.features.design import (
    DesignMatrixBuilder, SchemaMismatchError, outcome_vector
)
from credit_lasso.features.recoding import (
    ANALYSIS_COLUMNS, FOREIGN_MAP, HISTORY_MAP, PURPOSE_MAP, RENT_MAP, CategoryRecoder,
    UnmappedLevelError, recode_german_credit
)


@pytest.fixture
def small_table():
    """Ten rows, categoricals with 3 and 2 levels and one numeric column."""
    return pd.DataFrame({
        'Default': [0, 1, 0, 1, 0, 0, 1, 1, 0, 1],
        'a': ['p', 'q', 'r', 'p', 'q', 'r', 'p', 'q', 'r', 'p'],
        'b': ['u', 'v', 'u', 'v', 'u', 'v', 'u', 'v', 'u', 'v'],
        'x': [1.0, 2.0, 3.0, 4.0, 5.0, 6.0, 7.0, 8.0, 9.0, 10.0],
    })


class TestDataLoader:
    """Test cases for GermanCreditLoader."""

    def test_generate_synthetic_data(self):
        """Test synthetic data generation."""
        loader = GermanCreditLoader()
        df = loader.generate_synthetic_data(n_samples=200, random_state=42)

        assert len(df) == 200
        assert list(df.columns) == RAW_COLUMNS
        assert df['Default'].isin([0, 1]).all()
        assert set(df['history']) <= set(HISTORY_MAP)
        assert set(df['purpose']) <= set(PURPOSE_MAP)

    def test_synthetic_data_is_reproducible(self):
        loader = GermanCreditLoader()
        pd.testing.assert_frame_equal(
            loader.generate_synthetic_data(n_samples=50, random_state=7),
            loader.generate_synthetic_data(n_samples=50, random_state=7),
        )

    def test_missing_file(self, tmp_path):
        """A missing input file is fatal at load."""
        loader = GermanCreditLoader(tmp_path / "nope.csv")
        with pytest.raises(FileNotFoundError):
            loader.load_data()

    def test_load_csv(self, tmp_path):
        """Extra columns in the file are ignored."""
        df = GermanCreditLoader().generate_synthetic_data(n_samples=30, random_state=1)
        df['checkingstatus1'] = 'A11'
        csv_path = tmp_path / "credit.csv"
        df.to_csv(csv_path, index=False)

        loaded = GermanCreditLoader(csv_path).load_data()

        assert list(loaded.columns) == RAW_COLUMNS
        assert len(loaded) == 30

    def test_load_csv_missing_column(self, tmp_path):
        df = GermanCreditLoader().generate_synthetic_data(n_samples=30, random_state=1)
        csv_path = tmp_path / "credit.csv"
        df.drop(columns=['history']).to_csv(csv_path, index=False)

        with pytest.raises(KeyError):
            GermanCreditLoader(csv_path).load_data()

    def test_random_split(self):
        """A seeded 50/50 split of 1000 rows partitions the rows exactly."""
        df = GermanCreditLoader().generate_synthetic_data(n_samples=1000, random_state=42)

        train_df, test_df = create_random_split(df, test_fraction=0.5, random_state=42)

        assert abs(len(train_df) - 500) <= 1
        assert abs(len(test_df) - 500) <= 1
        assert train_df.index.intersection(test_df.index).empty
        combined = train_df.index.append(test_df.index)
        assert combined.is_unique
        assert sorted(combined) == sorted(df.index)

    def test_random_split_is_seeded(self):
        df = GermanCreditLoader().generate_synthetic_data(n_samples=100, random_state=42)

        first, _ = create_random_split(df, random_state=3)
        second, _ = create_random_split(df, random_state=3)

        assert list(first.index) == list(second.index)


class TestRecoding:
    """Test cases for categorical recoding."""

    def test_history_collapse(self):
        recoder = CategoryRecoder('history', HISTORY_MAP)
        codes = pd.Series(['A30', 'A31', 'A32', 'A33', 'A34'])

        recoded = recoder.recode(codes)

        assert list(recoded) == ['good', 'good', 'poor', 'poor', 'terrible']
        assert list(recoded.cat.categories) == ['good', 'poor', 'terrible']

    @pytest.mark.parametrize('code, expected', [
        ('A40', 'newcar'),
        ('A41', 'usedcar'),
        ('A42', 'goods/repair'),
        ('A43', 'goods/repair'),
        ('A44', 'goods/repair'),
        ('A45', 'goods/repair'),
        ('A46', 'edu'),
        ('A48', 'edu'),
        ('A49', 'biz'),
        ('A410', 'biz'),
    ])
    def test_purpose_mapping(self, code, expected):
        recoded = CategoryRecoder('purpose', PURPOSE_MAP).recode(pd.Series([code]))

        assert recoded.iloc[0] == expected

    @pytest.mark.parametrize('code, expected', [
        ('A201', 'foreign'),
        ('A202', 'german'),
    ])
    def test_foreign_mapping(self, code, expected):
        recoded = CategoryRecoder('foreign', FOREIGN_MAP).recode(pd.Series([code]))

        assert recoded.iloc[0] == expected

    @pytest.mark.parametrize('code, expected', [
        ('A151', 'TRUE'),
        ('A152', 'FALSE'),
        ('A153', 'FALSE'),
    ])
    def test_rent_mapping(self, code, expected):
        """Only renters (A151) are TRUE; owners and free housing are FALSE."""
        recoded = CategoryRecoder('rent', RENT_MAP).recode(pd.Series([code]))

        assert recoded.iloc[0] == expected

    def test_maps_cover_expected_codes(self):
        assert set(PURPOSE_MAP) == {f'A4{i}' for i in [0, 1, 2, 3, 4, 5, 6, 8, 9, 10]}
        assert set(FOREIGN_MAP) == {"A201", "A202"}
        assert set(RENT_MAP) == {"A151", "A152", "A153"}

    def test_unmapped_level(self):
        """Vacation loans (A47) are not part of the mapping."""
        recoder = CategoryRecoder('purpose', PURPOSE_MAP)

        with pytest.raises(UnmappedLevelError):
            recoder.recode(pd.Series(['A40', 'A47']))

    def test_unmapped_level_is_value_error(self):
        with pytest.raises(ValueError):
            CategoryRecoder('foreign', {'A201': 'foreign'}).recode(pd.Series(['A202']))

    def test_recode_german_credit(self):
        raw = GermanCreditLoader().generate_synthetic_data(n_samples=300, random_state=0)

        recoded = recode_german_credit(raw)

        assert list(recoded.columns) == ANALYSIS_COLUMNS
        assert len(recoded) == len(raw)
        for col in ['history', 'purpose', 'foreign', 'rent']:
            assert recoded[col].notna().all()
        assert set(recoded['history']) <= {'good', 'poor', 'terrible'}
        assert set(recoded['purpose']) <= {'newcar', 'usedcar', 'goods/repair', 'edu', 'biz'}
        assert set(recoded['foreign']) <= {'foreign', 'german'}
        assert ((recoded['rent'] == 'TRUE') == (raw['housing'] == 'A151')).all()

    def test_recode_does_not_modify_input(self):
        raw = GermanCreditLoader().generate_synthetic_data(n_samples=20, random_state=0)
        before = raw.copy()

        recode_german_credit(raw)

        pd.testing.assert_frame_equal(raw, before)

    def test_recode_missing_column(self):
        raw = GermanCreditLoader().generate_synthetic_data(n_samples=20, random_state=0)

        with pytest.raises(KeyError):
            recode_german_credit(raw.drop(columns=['housing']))


class TestDesignMatrix:
    """Test cases for DesignMatrixBuilder."""

    def test_column_counts(self, small_table):
        """5 indicators + 1 numeric + 21 products before pruning."""
        schema = DesignMatrixBuilder().fit(small_table)

        assert schema.n_columns + len(schema.dropped) == 5 + 1 + 21
        assert schema.numeric == ('x',)
        assert schema.categorical_levels == {'a': ('p', 'q', 'r'), 'b': ('u', 'v')}
        assert set(schema.dropped) == {'a_p:a_q', 'a_p:a_r', 'a_q:a_r', 'b_u:b_v'}

    def test_no_constant_columns(self, small_table):
        _, X, _ = DesignMatrixBuilder().fit_transform(small_table)

        assert (X.nunique() >= 2).all()

    def test_interaction_values(self, small_table):
        _, X, _ = DesignMatrixBuilder().fit_transform(small_table)

        np.testing.assert_array_equal(X['a_p:x'], X['a_p'] * X['x'])
        np.testing.assert_array_equal(X['b_u:x'], X['b_u'] * X['x'])
        np.testing.assert_array_equal(X['x^2'], small_table['x'] ** 2)
        np.testing.assert_array_equal(X['a_q:b_v'], X['a_q'] * X['b_v'])

    def test_one_hot_keeps_every_level(self, small_table):
        _, X, _ = DesignMatrixBuilder(interactions=False).fit_transform(small_table)

        assert list(X.columns) == ['a_p', 'a_q', 'a_r', 'b_u', 'b_v', 'x']
        np.testing.assert_array_equal(X[['a_p', 'a_q', 'a_r']].sum(axis=1), np.ones(10))

    def test_reproducible(self, small_table):
        builder = DesignMatrixBuilder()
        schema1, X1, y1 = builder.fit_transform(small_table)
        schema2, X2, y2 = builder.fit_transform(small_table.copy())

        assert schema1 == schema2
        pd.testing.assert_frame_equal(X1, X2)
        pd.testing.assert_series_equal(y1, y2)

    def test_transform_held_out(self, small_table):
        builder = DesignMatrixBuilder()
        schema = builder.fit(small_table)
        held_out = small_table.iloc[:3]

        X = builder.transform(held_out, schema)

        assert tuple(X.columns) == schema.columns
        assert len(X) == 3

    def test_transform_missing_column(self, small_table):
        builder = DesignMatrixBuilder()
        schema = builder.fit(small_table)

        with pytest.raises(SchemaMismatchError):
            builder.transform(small_table.drop(columns=['b']), schema)

    def test_transform_unseen_level(self, small_table):
        """Unseen levels get zero indicators and no new columns."""
        builder = DesignMatrixBuilder()
        schema = builder.fit(small_table)
        new = small_table.iloc[:2].copy()
        new['a'] = ['s', 'p']

        X = builder.transform(new, schema)

        assert tuple(X.columns) == schema.columns
        assert not any('a_s' in col for col in X.columns)
        assert X.iloc[0][['a_p', 'a_q', 'a_r']].sum() == 0
        assert X.iloc[1]['a_p'] == 1

    def test_outcome_must_be_numeric(self, small_table):
        table = small_table.assign(Default=['no', 'yes'] * 5)

        with pytest.raises(ValueError):
            DesignMatrixBuilder().fit_transform(table)

    def test_outcome_must_be_binary(self, small_table):
        """Fractional outcomes are rejected rather than truncated to 0."""
        table = small_table.assign(Default=[0.0, 0.7, 1.0, 0.0, 1.0] * 2)

        with pytest.raises(ValueError, match='0/1'):
            outcome_vector(table)

    def test_outcome_missing(self, small_table):
        with pytest.raises(SchemaMismatchError):
            outcome_vector(small_table.drop(columns=['Default']))

    def test_categorical_dtype_order(self):
        df = pd.DataFrame({
            'Default': [0, 1, 0, 1],
            'grade': pd.Categorical(['lo', 'hi', 'mid', 'hi'], categories=['lo', 'mid', 'hi', 'unused']),
        })

        schema = DesignMatrixBuilder(interactions=False).fit(df)

        assert schema.categorical_levels['grade'] == ('lo', 'mid', 'hi')

    def test_german_credit_design(self):
        raw = GermanCreditLoader().generate_synthetic_data(n_samples=300, random_state=0)
        records = recode_german_credit(raw)

        schema, X, y = DesignMatrixBuilder().fit_transform(records)

        assert 'history_terrible' in X.columns
        assert 'duration:history_poor' in X.columns
        assert len(X) == len(y) == 300
        assert (X.nunique() >= 2).all()


if __name__ == "__main__":
    pytest.main([__file__])
