"""Catalog reconciliation and catalog stores."""
from pricebook_ingest.services.reconciliation.reconciler import (
    CatalogReconciler,
    merge_variant_records,
)
from pricebook_ingest.services.reconciliation.store import CatalogStore, InMemoryCatalogStore

__all__ = [
    "CatalogReconciler",
    "merge_variant_records",
    "CatalogStore",
    "InMemoryCatalogStore",
]
