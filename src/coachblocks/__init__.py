"""Extract structured coaching blocks from assistant chat responses."""

__version__ = "0.1.0"
