"""Librarian - multi-tenant book catalog with bulk ingestion and emailed reports."""

__version__ = "0.1.0"
