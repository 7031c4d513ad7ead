"""Reconciliation domain: record shapes, ports and the reconciliation engine."""
