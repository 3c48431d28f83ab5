"""Spreadsheet reading and header detection."""
