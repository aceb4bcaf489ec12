"""Engine assembly and configuration for the SDD workflow engine."""

__version__ = "0.1.0"
