"""Pricebook ingestion worker.

Classifies pricebook sheet grids, extracts priced variants and reconciles
them into a deduplicated catalog with per-distributor pricing.
"""

__version__ = "0.1.0"
