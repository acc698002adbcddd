from __future__ import annotations

from dataclasses import dataclass
from typing import List

from structure_browser.core.models import CDR3SearchOptions

MIN_SUBSTRING_CDR3_LENGTH = 3

EMPTY_QUERY = "empty_query"
SUBSTRING_TOO_SHORT = "substring_too_short"


@dataclass(frozen=True)
class ValidationIssue:
    code: str
    message: str


class ValidationError(Exception):
    def __init__(self, issues: list[ValidationIssue]):
        self.issues = issues
        super().__init__("\n".join(f"{i.code}: {i.message}" for i in issues))


def validate_cdr3_query(
        options: CDR3SearchOptions,
        min_substring_length: int = MIN_SUBSTRING_CDR3_LENGTH,
) -> List[ValidationIssue]:
    """
    Check a CDR3 search before any request is sent.

    - the query must be non-empty
    - in substring mode the query must be at least `min_substring_length` long

    :return: the list of issues, empty when the search may proceed.
    """
    cdr3 = options.cdr3 or ""
    if len(cdr3) == 0:
        return [ValidationIssue(EMPTY_QUERY, "Empty search input")]

    if options.substring and len(cdr3) < min_substring_length:
        return [
            ValidationIssue(
                SUBSTRING_TOO_SHORT,
                f"Length of CDR3 substring should be greater or equal than {min_substring_length}",
            )
        ]
    return []


def ensure_valid_cdr3_query(
        options: CDR3SearchOptions,
        min_substring_length: int = MIN_SUBSTRING_CDR3_LENGTH,
) -> None:
    """
    :raises ValidationError: if `validate_cdr3_query` reports any issue.
    """
    issues = validate_cdr3_query(options, min_substring_length)
    if issues:
        raise ValidationError(issues)
