"""
Data models for aggregated token records.
"""

from .token import PaginatedResponse, SortField, SortOrder, Token, TokenFilter

__all__ = [
    'Token',
    'TokenFilter',
    'PaginatedResponse',
    'SortField',
    'SortOrder',
]
