"""
Export functionality for NephroTrack.
"""

from .json_export import export_history_json, export_history_overview
from .markdown import export_history_markdown

__all__ = [
    "export_history_json",
    "export_history_overview",
    "export_history_markdown",
]
