"""Natural-language weather query understanding and routing."""

__version__ = "0.1.0"
