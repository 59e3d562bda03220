"""Failure categories for the SIP relay.

Every relay failure is contained to its own session; the kind lets callers
(and tests) tell failures apart without matching log text.
"""

from __future__ import annotations

from enum import Enum


class RelayErrorKind(str, Enum):
    BIND = "bind"
    SEND = "send"
    DECODE = "decode"
    REWRITE = "rewrite"
    CAPACITY = "capacity"


class RelayError(Exception):
    kind: RelayErrorKind = RelayErrorKind.SEND
    default_detail: str = "Relay error"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or self.default_detail)
        self.detail = detail or self.default_detail


class BindError(RelayError):
    kind = RelayErrorKind.BIND
    default_detail = "Could not bind a local UDP socket."


class SendError(RelayError):
    kind = RelayErrorKind.SEND
    default_detail = "Datagram send to the SIP server failed."


class DecodeError(RelayError):
    kind = RelayErrorKind.DECODE
    default_detail = "Message is not valid UTF-8."


class RewriteError(RelayError):
    kind = RelayErrorKind.REWRITE
    default_detail = "SIP header rewrite failed."


class CapacityError(RelayError):
    kind = RelayErrorKind.CAPACITY
    default_detail = "Relay session limit reached."
