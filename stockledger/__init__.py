"""Batch-tracked inventory ledger with job consumption and payment allocation."""

__version__ = "1.0.0"
