"""Command-line interface for semmap."""
