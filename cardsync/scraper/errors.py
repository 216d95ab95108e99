"""
Card Sync — Scraper Error Taxonomy

Record-level errors (ParseError) are returned alongside parsed records and
never abort a batch. Batch-level errors (ConvergenceError,
BrowserSessionError) abort one cardset fetch. NavError is recorded per
control index by the navigator.
"""

from __future__ import annotations


class ScraperError(Exception):
    """Base class for all scraper errors."""


class BrowserSessionError(ScraperError):
    """A Playwright call on a tab failed (navigation, wait, evaluate, ...)."""


class ConvergenceError(ScraperError):
    """A list view could not be loaded to completeness."""


class CountMismatchError(ConvergenceError):
    """Materialized item count never reached the advertised total."""

    def __init__(self, expected: int, actual: int) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"item count({actual}) doesn't meet result_count({expected})"
        )


class NavError(ScraperError):
    """Selecting one control of a control list failed."""

    def __init__(self, index: int, label: str, message: str) -> None:
        self.index = index
        self.label = label
        self.message = message
        super().__init__(f"control #{index} ({label!r}): {message}")


class ParseError(ScraperError):
    """One item node could not be turned into a record."""


class MalformedTitleError(ParseError):
    """A card-like title does not follow the '<name> (<remark>)' grammar."""

    def __init__(self, title: str) -> None:
        self.title = title
        super().__init__(f"malformed card title: {title!r}")


class MissingFieldError(ParseError):
    """A required record field was never set."""

    def __init__(self, field: str) -> None:
        self.field = field
        super().__init__(f"missing required field: {field}")
