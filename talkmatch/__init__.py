"""Comment identity resolution and source location for wiki talk pages."""

__version__ = "0.1.0"
