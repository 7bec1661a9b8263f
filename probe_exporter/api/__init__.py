"""
HTTP surface of the exporter.
"""

from .app import create_app

__all__ = ["create_app"]
