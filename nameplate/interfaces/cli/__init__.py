"""Command-line interface for nameplate extraction."""
