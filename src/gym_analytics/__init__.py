"""gym_analytics package.

Contains modules for fetching tenant-scoped gym records (signups, memberships,
staff) from MongoDB, normalizing them, aggregating them into chart-ready
series, and utilities for serving a Streamlit reporting dashboard.

Architecture:
- Source → Clean → Aggregate, recomputed from scratch on every request
- Dask runs the independent record fetches concurrently
- Pandas normalizes and groups records; Pydantic models describe the series
"""

__all__ = ["__version__"]
__version__ = "0.1.0"
