"""Multi-provider Substrate balance resolver."""

__version__ = "0.1.0"
