"""Errors raised by the polling and aggregation services."""


class SourceUnavailable(Exception):
    """The checks-needing-poll source or the sample sink could not be reached."""


class RejectionError(Exception):
    """A sample was refused; the poll result is dropped and not retried."""


class CheckNotFound(RejectionError):
    def __init__(self, check_id):
        super().__init__(f"Check {check_id} not found")
        self.check_id = check_id


class PollNotExpected(RejectionError):
    def __init__(self, check_id):
        super().__init__(f"Check {check_id} was already polled. No sample was created")
        self.check_id = check_id


class AggregationWriteError(Exception):
    """Writing one aggregated key failed."""

    def __init__(self, key, cause: Exception):
        super().__init__(f"Failed to store QoS for {key}: {cause}")
        self.key = key
        self.cause = cause
