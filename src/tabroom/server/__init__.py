"""Local background server for tabroom."""
