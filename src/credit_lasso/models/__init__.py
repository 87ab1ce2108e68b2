"""Penalized logistic regression models."""
