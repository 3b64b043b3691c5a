"""Attestation primitives of a TDX guest, backed by a deterministic software model.

The model produces the same report for the same report data, so keys derived
from it are stable and quotes are reproducible outside real TDX hardware.
"""

from __future__ import annotations

from dataclasses import dataclass, field

REPORT_DATA_SIZE = 64
REPORT_SIZE = 1024
EXTEND_DATA_LEN = 48
QUOTE_TRAILER_SIZE = 128
MAX_RTMR_INDEX = 3
RTMR_EVENT_VERSION = 1

MOCK_SIGNATURE = b"MOCK_QUOTE_SIGNATURE"

_REPORT_PREFIX = bytes(
    [
        0x01, 0x23, 0x45, 0x67, 0x89, 0xAB, 0xCD, 0xEF,
        0xFE, 0xDC, 0xBA, 0x98, 0x76, 0x54, 0x32, 0x10,
        0xA5, 0xB7, 0xC9, 0xD1, 0xE3, 0xF5, 0x17, 0x29,
        0x3B, 0x4D, 0x5F, 0x71, 0x83, 0x95, 0xA7, 0xB9,
    ]
)
_REPORT_DATA_OFFSET = len(_REPORT_PREFIX)
_TAIL_OFFSET = _REPORT_DATA_OFFSET + REPORT_DATA_SIZE


class TdxError(Exception):
    """Raised when an attestation operation is rejected."""


@dataclass
class RtmrEvent:
    """An event that extends one runtime measurement register."""

    rtmr_index: int = 0
    extend_data: bytes = field(default=bytes(EXTEND_DATA_LEN))
    version: int = RTMR_EVENT_VERSION
    event_data_size: int = 0

    def __post_init__(self) -> None:
        data = bytes(self.extend_data)
        if len(data) > EXTEND_DATA_LEN:
            raise ValueError(
                f"extend data is {len(data)} bytes, at most {EXTEND_DATA_LEN} allowed"
            )
        self.extend_data = data.ljust(EXTEND_DATA_LEN, b"\x00")


def _normalise_report_data(report_data: bytes | None) -> bytes:
    if report_data is None:
        return bytes(REPORT_DATA_SIZE)
    data = bytes(report_data)
    if len(data) > REPORT_DATA_SIZE:
        raise TdxError(
            f"report data is {len(data)} bytes, at most {REPORT_DATA_SIZE} allowed"
        )
    return data.ljust(REPORT_DATA_SIZE, b"\x00")


def get_report(report_data: bytes | None = None) -> bytes:
    """Return a TD report of REPORT_SIZE bytes that embeds the report data."""
    data = _normalise_report_data(report_data)
    tail = bytes((i * 0x53) & 0xFF for i in range(_TAIL_OFFSET, REPORT_SIZE))
    report = _REPORT_PREFIX + data + tail
    print("[MOCK] Generated TDX report")
    return report


def extend_rtmr(event: RtmrEvent) -> None:
    """Extend an RTMR with the event's data; raise TdxError on a bad event."""
    if event is None or event.version != RTMR_EVENT_VERSION:
        raise TdxError("invalid RTMR event version")
    if not 0 <= event.rtmr_index <= MAX_RTMR_INDEX:
        raise TdxError(f"invalid RTMR index: {event.rtmr_index}")
    print(f"[MOCK] Extended RTMR[{event.rtmr_index}] with data")


def get_quote(report_data: bytes | None = None) -> bytes:
    """Return a quote: the report followed by a signature block."""
    report = get_report(report_data)
    trailer = MOCK_SIGNATURE.ljust(QUOTE_TRAILER_SIZE, b"\x00")
    quote = report + trailer
    print(f"[MOCK] Generated TDX quote ({len(quote)} bytes)")
    return quote