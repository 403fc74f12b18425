"""Cleaning utilities for the reporting pipeline.

Provides the normalization step applied to every raw record before
aggregation: timestamp parsing and month bucketing, label defaults and
numeric coercion.
"""
