"""Turn natural-language questions about devices into osquery SQL."""

__version__ = "0.1.0"
