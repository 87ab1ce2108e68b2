#!/usr/bin/env python3
"""Run the German Credit lasso logistic regression analysis."""

import argparse
import logging
import sys
from pathlib import Path

import matplotlib

matplotlib.use('Agg')

# Add src to path
sys.path.append(str(Path(__file__).parent.parent / "src"))

from credit_lasso.pipeline import run_analysis  # noqa: E402
from credit_lasso.utils.helpers import load_config  # noqa: E402

# Set up logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def main():
    """Main analysis function."""
    parser = argparse.ArgumentParser(description="Lasso logistic credit scoring on the German Credit data")
    parser.add_argument(
        "--config",
        type=str,
        default="configs/default.yaml",
        help="Path to configuration file"
    )
    parser.add_argument(
        "--data-path",
        type=str,
        default=None,
        help="Path to the credit CSV file"
    )
    parser.add_argument(
        "--synthetic",
        action="store_true",
        help="Use generated records instead of the CSV file"
    )
    parser.add_argument(
        "--output-dir",
        type=str,
        default=None,
        help="Output directory for figures and the report"
    )
    parser.add_argument(
        "overrides",
        nargs="*",
        help="Dotted config overrides, e.g. model.n_folds=10"
    )

    args = parser.parse_args()

    overrides = list(args.overrides)
    if args.data_path:
        overrides.append(f"data.path={args.data_path}")
    if args.synthetic:
        overrides.append("data.synthetic=true")
    if args.output_dir:
        overrides.append(f"output.dir={args.output_dir}")

    config = load_config(args.config, overrides)

    try:
        result = run_analysis(config)
    except (FileNotFoundError, KeyError, ValueError) as e:
        logger.error(f"Analysis aborted: {e}")
        sys.exit(1)

    # Print summary
    print("\n" + "=" * 60)
    print("GERMAN CREDIT - LASSO LOGISTIC REGRESSION SUMMARY")
    print("=" * 60)
    print(f"Records: {len(result.records)}")
    print(f"Design columns: {result.schema.n_columns}")
    print("\nNonzero coefficients by selection rule:")
    for criterion, count in result.selection_counts.items():
        print(f"  {criterion}: {count}")
    print(f"\nOut-of-sample R^2: {result.oos_r2:.4f}")
    print(f"In-sample AUC (train half): {result.train_test.train_roc['auc']:.4f}")
    print(f"Out-of-sample AUC (test half): {result.train_test.test_roc['auc']:.4f}")
    print("=" * 60)


if __name__ == "__main__":
    main()
