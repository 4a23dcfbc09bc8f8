"""
Bulk issue operations for the project board.

Multi-select issues, validate a batch change, execute it in bounded batches
against the issues API, and undo/redo it.
"""

__version__ = "0.1.0"
