"""Aggregation helpers.

This package turns normalized signup, membership and staff records into the
chart-ready series shown by the reporting dashboard: monthly growth and
revenue, package and status distributions, the top-packages leaderboard,
revenue and staff breakdowns.
"""
