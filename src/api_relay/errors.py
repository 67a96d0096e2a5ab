"""Error taxonomy for the relay and the spec-shape service.

Every error is reported to the caller once, as ``{"error": message}`` with
the class's ``status_code``.
"""


class RelayError(Exception):
    """Base class for errors that are surfaced to the caller."""

    status_code = 400
    default_message = "Bad request"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(RelayError):
    """The relay request or spec-shape query has the wrong shape."""

    default_message = "Invalid relay request"


class InvalidTargetUrl(RelayError):
    default_message = "Invalid target URL"


class BlockedTarget(RelayError):
    """The Host Safety Guard refused the target."""

    default_message = "Blocked target host"


class InvalidBody(RelayError):
    default_message = "Invalid JSON body"


class FetchFailure(RelayError):
    """Upstream or spec source unreachable, or answered with a non-2xx status."""

    default_message = "Failed to fetch"


class ParseError(RelayError):
    default_message = "Spec is not valid JSON or YAML"


class EmptyDocument(RelayError):
    default_message = "Empty spec"
