"""
Request validation run before anything is sent to the structures API.
"""

from .cdr3 import ValidationError, ValidationIssue, ensure_valid_cdr3_query, validate_cdr3_query

__all__ = ["ValidationError", "ValidationIssue", "ensure_valid_cdr3_query", "validate_cdr3_query"]
