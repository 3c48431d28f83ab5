"""Parsing, normalization, classification and job orchestration services."""
