"""HTTP surface for the block extractor."""

from .app import create_app

__all__ = ["create_app"]
