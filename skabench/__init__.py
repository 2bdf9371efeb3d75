"""SKA Workbench package root."""

__version__ = "0.3.0"
