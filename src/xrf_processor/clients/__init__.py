"""AI service clients."""
