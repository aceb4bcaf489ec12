"""Command-line interfaces for the SDD workflow engine."""
