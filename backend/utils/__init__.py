"""Shared utility functions for the COB backend."""

from .date_parser import parse_flexible_date

__all__ = ["parse_flexible_date"]
