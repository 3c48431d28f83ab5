"""Database-backed stores."""
