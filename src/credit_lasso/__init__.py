"""Lasso logistic regression credit scoring on the German Credit data."""

__version__ = "0.1.0"
