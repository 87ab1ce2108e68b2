"""Categorical recoding and design matrix construction."""
