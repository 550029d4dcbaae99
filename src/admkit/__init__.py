"""System administration toolbox."""

__version__ = "0.4.0"
