"""Ingestion services: classification, extraction, reconciliation and import."""
