"""Command-line interface for cardkeep."""
