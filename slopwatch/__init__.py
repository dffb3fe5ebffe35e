"""
SlopWatch vote service.

Anonymous, toggleable "slop" votes on posts with per-user engagement
statistics and global totals.
"""

__version__ = '1.0.0'
