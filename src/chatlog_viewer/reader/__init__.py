"""Log file discovery and reading."""
