"""Request handlers for the trusted-application service.

Each handler takes the fields of a request and returns a response object.
Failures are reported in the response, never raised, so the handlers can sit
behind any transport.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

from tdxtapp.boost import AttestationMode, BoostError, BoostLib, MAX_RTMR_INDEX
from tdxtapp.key_tool import KeyTool, KeyToolError

DEFAULT_RTMR_INDEX = 3

_log = logging.getLogger(__name__)


@dataclass(frozen=True)
class StartAppResponse:
    """Reply to a request to measure and start an application."""

    success: bool
    message: str
    volumes_hash: bytes = b""


@dataclass(frozen=True)
class QuoteResponse:
    """Reply to a request for an attestation quote."""

    success: bool
    message: str
    quote_data: bytes = b""
    quote_size: int = 0


@dataclass(frozen=True)
class PubkeyResponse:
    """Reply to a request for the enclave's public key and address."""

    success: bool
    message: str
    public_key: bytes = b""
    eth_address: bytes = b""
    eth_address_hex: str = ""


def _resolve_mode(mode: AttestationMode | int) -> AttestationMode:
    if mode is AttestationMode.RTMR or mode == AttestationMode.RTMR.value:
        return AttestationMode.RTMR
    return AttestationMode.REPORT_DATA


class TappService:
    """Serves application start, quote and public-key requests."""

    def __init__(self) -> None:
        self.boost_lib = BoostLib()
        self.key_tool = KeyTool()
        self._start_lock = threading.Lock()
        _log.info("TAPP service initialized")

    def start_app(
        self,
        compose_content: str,
        mode: AttestationMode | int = AttestationMode.REPORT_DATA,
        rtmr_index: int = 0,
    ) -> StartAppResponse:
        """Measure and start an application described by compose content."""
        _log.info("StartApp request received")
        if not compose_content:
            _log.error("StartApp failed: empty compose content")
            return StartAppResponse(False, "Empty compose content provided")

        if not 0 <= rtmr_index <= MAX_RTMR_INDEX:
            rtmr_index = DEFAULT_RTMR_INDEX
            _log.info("Using default RTMR index: %d", rtmr_index)

        try:
            with self._start_lock:
                result = self.boost_lib.start_app(
                    compose_content, _resolve_mode(mode), rtmr_index
                )
        except BoostError as exc:
            _log.error("StartApp failed: %s", exc.message)
            return StartAppResponse(False, exc.message)
        except Exception as exc:  # noqa: BLE001 - reported to the caller
            _log.exception("StartApp raised")
            return StartAppResponse(False, f"Internal error: {exc}")

        _log.info("StartApp completed, hash of %d bytes", len(result.volumes_hash))
        return StartAppResponse(True, result.message, result.volumes_hash)

    def get_quote(self, report_data: bytes = b"") -> QuoteResponse:
        """Generate a quote, optionally binding up to 32 bytes of caller data."""
        _log.info("GetQuote request received")
        data = bytes(report_data)
        if data:
            _log.info("Using custom report data (%d bytes)", len(data))
        try:
            result = self.boost_lib.generate_quote(data)
        except BoostError as exc:
            _log.error("GetQuote failed: %s", exc.message)
            return QuoteResponse(False, exc.message)
        except Exception as exc:  # noqa: BLE001 - reported to the caller
            _log.exception("GetQuote raised")
            return QuoteResponse(False, f"Internal error: {exc}")

        quote = result.quote_data
        _log.info("GetQuote completed, quote of %d bytes", len(quote))
        return QuoteResponse(True, result.message, quote, len(quote))

    def get_pubkey(self) -> PubkeyResponse:
        """Return the public key and Ethereum address derived from the report."""
        _log.info("GetPubkey request received")
        try:
            result = self.key_tool.get_pubkey_from_report()
        except KeyToolError as exc:
            _log.error("GetPubkey failed: %s", exc)
            return PubkeyResponse(False, str(exc))
        except Exception as exc:  # noqa: BLE001 - reported to the caller
            _log.exception("GetPubkey raised")
            return PubkeyResponse(False, f"Internal error: {exc}")

        _log.info("GetPubkey completed, address %s", result.eth_address_hex)
        return PubkeyResponse(
            True,
            result.message,
            result.public_key,
            result.eth_address,
            result.eth_address_hex,
        )