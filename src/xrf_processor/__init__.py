"""XRF lead paint spreadsheet ingestion, normalization and classification."""

__version__ = "0.1.0"
