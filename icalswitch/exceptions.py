"""Exception hierarchy for the calendar switch.

Every error raised inside a pipeline run derives from IcalSwitchError so the
run loop can map it to a status line and a diagnostic entry without letting
it escape. An unresolvable timezone identifier is deliberately not part of
this hierarchy: the resolver returns None and callers fall through to the
next timezone tier.
"""

from typing import Optional


class IcalSwitchError(Exception):
    """Base exception for all calendar switch errors."""

    #: Short status shown in the device's ``last_status`` attribute.
    status_label = "Error"

    def __init__(self, message: str = "", status_label: Optional[str] = None):
        super().__init__(message)
        if status_label:
            self.status_label = status_label


class ConfigError(IcalSwitchError):
    """Configuration is missing or unusable.

    Raised when:
    - No ICS URL is configured
    - The URL is not http(s) or has no hostname

    The switch is forced off and the run is retried on the regular cadence.
    """

    status_label = "Missing ICS URL"


class FeedError(IcalSwitchError):
    """Base class for failures obtaining a usable feed document."""


class TransportError(FeedError):
    """The feed could not be fetched.

    Raised when:
    - The request times out
    - The connection fails (DNS, refused, TLS)

    The busy/free signal is left unchanged.
    """

    status_label = "Fetch exception"


class InvalidFeedError(FeedError):
    """The feed was fetched but cannot be parsed.

    Raised when:
    - The HTTP status is not 2xx
    - The body is empty
    - The body lacks BEGIN:VCALENDAR or BEGIN:VEVENT

    The busy/free signal is left unchanged.
    """

    status_label = "Fetch failed"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        head: str = "",
        status_label: Optional[str] = None,
    ):
        super().__init__(message, status_label)
        self.status_code = status_code
        self.head = head


class MalformedEventError(IcalSwitchError):
    """A single VEVENT block cannot be turned into an event.

    Raised when:
    - DTSTART is missing or cannot be decoded
    - DTEND is present but cannot be decoded
    - The end instant precedes the start instant

    Only the offending event is dropped; parsing continues with the next block.
    """

    def __init__(
        self,
        reason: str,
        raw_value: str = "",
        tzid: Optional[str] = None,
        uid: str = "",
        summary: str = "",
    ):
        super().__init__(reason)
        self.reason = reason
        self.raw_value = raw_value
        self.tzid = tzid
        self.uid = uid
        self.summary = summary
