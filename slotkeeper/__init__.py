"""
Availability and booking engine for staff-based service businesses.
"""

__version__ = "0.1.0"
