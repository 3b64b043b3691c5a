"""Ethereum key material derived from the TD report.

The private key is derived on demand from the TD report with HKDF-SHA256 and
is never stored. Only the public key and the address leave this module.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from tdxtapp import tdx

ETH_PRIVKEY_LEN = 32
ETH_PUBKEY_LEN = 64
ETH_ADDR_LEN = 20
ETH_ADDR_HEX_LEN = 42

_HKDF_SALT = b"TDX-Ethereum-Key-Derivation"
_HKDF_INFO = b"TDX-0G-TAPP-KEY"
_UNCOMPRESSED_PREFIX = 0x04
_HEX_LINE_BYTES = 32

_log = logging.getLogger(__name__)


class KeyToolError(Exception):
    """Raised when key material cannot be obtained or derived."""


@dataclass(frozen=True)
class PubkeyResult:
    """Public key material derived from the TD report."""

    public_key: bytes
    eth_address: bytes
    eth_address_hex: str
    message: str = "Successfully derived keys from TDX environment"


def format_address_hex(address: bytes) -> str:
    """Return a 20-byte address as a lower-case hex string with a 0x prefix."""
    data = bytes(address)
    if len(data) != ETH_ADDR_LEN:
        raise ValueError(
            f"address is {len(data)} bytes, expected {ETH_ADDR_LEN}"
        )
    return "0x" + data.hex()


def format_hex(label: str, data: bytes) -> str:
    """Return a labelled hex dump, wrapped every 32 bytes."""
    data = bytes(data)
    lines = [
        data[start:start + _HEX_LINE_BYTES].hex()
        for start in range(0, len(data), _HEX_LINE_BYTES)
    ]
    return "\n".join([f"{label} ({len(data)} bytes):", *lines]) if lines else (
        f"{label} ({len(data)} bytes):\n"
    )


def _derive_address(public_key: bytes) -> bytes:
    if len(public_key) != ETH_PUBKEY_LEN:
        raise KeyToolError(f"Invalid public key size: {len(public_key)}")
    digest = hashlib.sha3_256(bytes([_UNCOMPRESSED_PREFIX]) + public_key).digest()
    return digest[-ETH_ADDR_LEN:]


class KeyTool:
    """Derives the enclave's Ethereum identity from the TD report."""

    def _private_key(self) -> ec.EllipticCurvePrivateKey:
        try:
            report = tdx.get_report(bytes(tdx.REPORT_DATA_SIZE))
        except tdx.TdxError as exc:
            raise KeyToolError("Failed to get private key from TDX report") from exc
        _log.debug("TDX report obtained successfully")

        secret = bytearray(
            HKDF(
                algorithm=hashes.SHA256(),
                length=ETH_PRIVKEY_LEN,
                salt=_HKDF_SALT,
                info=_HKDF_INFO,
            ).derive(report)
        )
        try:
            scalar = int.from_bytes(secret, "big")
            try:
                return ec.derive_private_key(scalar, ec.SECP256K1())
            except ValueError as exc:
                raise KeyToolError("Failed to derive public key") from exc
        finally:
            secret[:] = bytes(len(secret))

    def get_public_key_only(self) -> bytes:
        """Return the 64-byte uncompressed public key without the 0x04 prefix."""
        private_key = self._private_key()
        encoded = private_key.public_key().public_bytes(
            serialization.Encoding.X962,
            serialization.PublicFormat.UncompressedPoint,
        )
        if len(encoded) != ETH_PUBKEY_LEN + 1:
            raise KeyToolError(f"Invalid public key length: {len(encoded)}")
        return encoded[1:]

    def get_address_only(self) -> bytes:
        """Return the 20-byte Ethereum address."""
        return _derive_address(self.get_public_key_only())

    def get_pubkey_from_report(self) -> PubkeyResult:
        """Return the public key, the address and the address in hex."""
        public_key = self.get_public_key_only()
        address = _derive_address(public_key)
        return PubkeyResult(
            public_key=public_key,
            eth_address=address,
            eth_address_hex=format_address_hex(address),
        )