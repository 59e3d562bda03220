"""Via/Contact rewriting for SIP messages leaving the relay over UDP.

A browser client stamps its messages with WebSocket transport references
(``Via: SIP/2.0/WS xyz.invalid`` and ``Contact: <sip:u@xyz.invalid;transport=ws>``).
The upstream server would answer towards those, so before a message is sent
over UDP both headers are pointed at the relay's own socket instead.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Final

MESSAGE_TRANSPORTS: Final[frozenset[str]] = frozenset({"WS", "WSS"})
DATAGRAM_TRANSPORT: Final[str] = "UDP"

_LINE_BREAK = re.compile(r"(\r\n|\n)")
_HEADER_LINE = re.compile(r"^(?P<name>[A-Za-z][A-Za-z0-9.!%*_+`'~-]*)(?P<colon>[ \t]*:)(?P<value>.*)$")
_VIA_ENTRY = re.compile(
    r"(?P<proto>SIP[ \t]*/[ \t]*2\.0[ \t]*/[ \t]*)(?P<transport>[A-Za-z0-9]+)"
    r"(?P<sep>[ \t]+)(?P<sent_by>[^\s;,]+)",
    re.IGNORECASE,
)
_CONTACT_URI = re.compile(
    r"<sip:(?P<user>[^@<>]+)@(?P<hostport>[^>;]+)(?P<params>;[^>]*)>",
    re.IGNORECASE,
)
_TRANSPORT_PARAM = re.compile(r";transport=(?P<value>[^;>]*)", re.IGNORECASE)

_VIA_NAMES: Final[frozenset[str]] = frozenset({"via", "v"})
_CONTACT_NAMES: Final[frozenset[str]] = frozenset({"contact", "m"})


@dataclass(frozen=True, slots=True)
class HeaderRewriteResult:
    message: str
    via_rewritten: int
    contact_rewritten: int

    @property
    def changed(self) -> bool:
        return bool(self.via_rewritten or self.contact_rewritten)


def format_hostport(address: str, port: int) -> str:
    if ":" in address and not address.startswith("["):
        return f"[{address}]:{port}"
    return f"{address}:{port}"


def _is_message_transport(token: str) -> bool:
    return token.strip().upper() in MESSAGE_TRANSPORTS


def _rewrite_via_value(value: str, hostport: str) -> tuple[str, int]:
    out: list[str] = []
    count = 0
    pos = 0
    for match in _VIA_ENTRY.finditer(value):
        if not _is_message_transport(match["transport"]):
            continue
        out.append(value[pos : match.start()])
        out.append(f"{match['proto']}{DATAGRAM_TRANSPORT}{match['sep']}{hostport}")
        pos = match.end()
        count += 1
    if not count:
        return value, 0
    out.append(value[pos:])
    return "".join(out), count


def _rewrite_contact_value(value: str, hostport: str) -> tuple[str, int]:
    out: list[str] = []
    count = 0
    pos = 0
    for match in _CONTACT_URI.finditer(value):
        params = match["params"]
        transport = _TRANSPORT_PARAM.search(params)
        if transport is None or not _is_message_transport(transport["value"]):
            continue
        params = params[: transport.start()] + f";transport={DATAGRAM_TRANSPORT.lower()}" + params[transport.end() :]
        out.append(value[pos : match.start()])
        out.append(f"<sip:{match['user']}@{hostport}{params}>")
        pos = match.end()
        count += 1
    if not count:
        return value, 0
    out.append(value[pos:])
    return "".join(out), count


def rewrite_headers(message: str, local_address: str, local_port: int) -> HeaderRewriteResult:
    """Rewrite WebSocket Via/Contact values to ``local_address:local_port`` over UDP.

    The start line, all other header lines, every line terminator and the body
    are copied through unchanged. Values that do not have the expected shape
    are left alone, so a message without WebSocket references comes back
    identical.
    """

    hostport = format_hostport(local_address, local_port)
    parts = _LINE_BREAK.split(message)
    out: list[str] = []
    via_count = 0
    contact_count = 0

    for index in range(0, len(parts), 2):
        line = parts[index]
        terminator = parts[index + 1] if index + 1 < len(parts) else ""

        if index == 0:
            out.append(line + terminator)
            continue
        if line == "":
            # End of headers: the body is everything after this blank line.
            out.append(terminator)
            out.append("".join(parts[index + 2 :]))
            break

        header = _HEADER_LINE.match(line)
        if header is not None:
            name = header["name"].lower()
            if name in _VIA_NAMES:
                value, n = _rewrite_via_value(header["value"], hostport)
                via_count += n
                line = f"{header['name']}{header['colon']}{value}"
            elif name in _CONTACT_NAMES:
                value, n = _rewrite_contact_value(header["value"], hostport)
                contact_count += n
                line = f"{header['name']}{header['colon']}{value}"

        out.append(line + terminator)

    if not via_count and not contact_count:
        return HeaderRewriteResult(message=message, via_rewritten=0, contact_rewritten=0)

    return HeaderRewriteResult(
        message="".join(out),
        via_rewritten=via_count,
        contact_rewritten=contact_count,
    )


def rewrite_message(message: str, local_address: str, local_port: int) -> str:
    return rewrite_headers(message, local_address, local_port).message


def first_line(message: str) -> str:
    return _LINE_BREAK.split(message, maxsplit=1)[0]
