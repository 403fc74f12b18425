"""Data source helpers.

Resolve reporting time windows and read tenant-scoped records (signups,
memberships, staff, roles) from MongoDB.
"""
