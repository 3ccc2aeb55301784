"""Exception taxonomy for swimsim."""

from __future__ import annotations


class SwimSimException(Exception):
    """Base exception for all swimsim errors."""

    pass


class ConfigurationError(SwimSimException):
    """Raised when run parameters are invalid; no run is attempted."""

    def __init__(self, field_name: str, message: str) -> None:
        self.field_name = field_name
        super().__init__(f"{field_name}: {message}")


class ProtocolInvariantError(SwimSimException):
    """
    Raised when the state machine observes something a correct
    implementation can never produce: a request answered twice, a response
    processed twice, gossip naming an unknown member, or an action applied
    while it is not enabled.
    """

    pass


class TransportError(SwimSimException):
    """Raised on transport misuse, e.g. an unknown request handle."""

    pass
