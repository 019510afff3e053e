"""Recoverable engine failures.

Messages are written for the end user: the chat router shows them verbatim
and the REST layer returns them as the HTTP error detail.
"""


class SchedulerError(Exception):
    status_code = 400


class ParseFailure(SchedulerError):
    """No usable date or time range in the text."""


class ValidationFailure(SchedulerError):
    """Bad interval, bad split count, breaks too large, below the split floor."""


class NotFound(SchedulerError):
    status_code = 404


class TemporalPolicyViolation(SchedulerError):
    """Starting in the past, or completing something that has not ended."""

    status_code = 422
