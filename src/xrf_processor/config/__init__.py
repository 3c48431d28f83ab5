"""Configuration: column alias table and YAML config loading."""
