"""Link preview metadata extraction for short links."""

__version__ = "0.1.0"
