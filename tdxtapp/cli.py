"""Command-line front end for application measurement, quotes and keys."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Callable, Sequence

from tdxtapp import boost, key_tool
from tdxtapp.boost import AttestationMode, BoostError, BoostLib
from tdxtapp.key_tool import KeyTool, KeyToolError

PROG = "tapp-cli"
DEFAULT_QUOTE_FILE = "quote.dat"
DEFAULT_RTMR_INDEX = 3

_PUBKEY_LABEL = "Public Key (uncompressed, without 0x04 prefix)"
_ADDRESS_LABEL = "Ethereum Address (raw bytes)"
_HASH_LABEL = "Volume Measurement Hash"

_MODES = {"report": AttestationMode.REPORT_DATA, "rtmr": AttestationMode.RTMR}


class _CommandError(Exception):
    """A command failed; the message is reported on standard error."""


def _usage(prog: str = PROG) -> str:
    return f"""TDX TAPP CLI Tool - Unified Boost & Key Management
Usage: {prog} <category> <command> [options]

BOOST COMMANDS:
  boost start_app <compose.yml> <mode> [rtmr]  Start application from Docker Compose file
  boost measure <compose.yml> <rtmr>           Measure docker compose volumes only
  boost quote [output_file]                    Generate TDX quote

KEY COMMANDS:
  key pubkey                                   Display public key derived from TDX report
  key address                                  Display Ethereum address derived from TDX report
  key all                                      Display both public key and address

OPTIONS:
  mode: report|rtmr                            Attestation mode for start_app command
  rtmr: 0-3 (required only for rtmr mode)      RTMR index

EXAMPLES:
  {prog} boost start_app docker-compose.yml report
  {prog} boost start_app docker-compose.yml rtmr 3
  {prog} boost measure docker-compose.yml 3
  {prog} boost quote my_quote.dat
  {prog} key all

For server functionality, use: tapp-server

Note: Private keys are never stored and only exist transiently
      in memory within the TDX environment."""


def _parse_rtmr(text: str) -> int:
    try:
        index = int(text.strip())
    except ValueError:
        raise _CommandError(f"Error: invalid RTMR index '{text}'") from None
    if not 0 <= index <= boost.MAX_RTMR_INDEX:
        raise _CommandError("Error: RTMR index must be 0-3")
    return index


def _read_compose(path: str) -> str:
    try:
        content = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        print(f"Failed to open file {path}: {exc.strerror or exc}", file=sys.stderr)
        content = ""
    if not content:
        raise _CommandError("Failed to read compose file")
    return content


# -- boost commands --------------------------------------------------------


def _boost_start_app(lib: BoostLib, args: Sequence[str]) -> None:
    if len(args) < 2:
        raise _CommandError(
            "Error: 'boost start_app' requires <compose.yml> and <mode> arguments"
        )
    compose_path, mode_name, *rest = args
    mode = _MODES.get(mode_name)
    if mode is None:
        raise _CommandError(
            f"Error: Invalid mode '{mode_name}'. Must be 'report' or 'rtmr'"
        )
    if mode is AttestationMode.RTMR and not rest:
        raise _CommandError("Error: RTMR mode requires <rtmr> index argument")
    rtmr_index = _parse_rtmr(rest[0]) if rest else DEFAULT_RTMR_INDEX

    compose_content = _read_compose(compose_path)
    print(f"Starting application from: {compose_path}")
    print(f"Attestation mode: {mode_name}")
    if rest:
        print(f"Using RTMR index: {rtmr_index}")

    try:
        result = lib.start_app(compose_content, mode, rtmr_index)
    except BoostError as exc:
        raise _CommandError(f"Failed to start application: {exc.message}") from exc

    print("Successfully measured and started application")
    print(boost.format_hex(_HASH_LABEL, result.volumes_hash))
    print("Docker Compose services are now running")


def _boost_measure(lib: BoostLib, args: Sequence[str]) -> None:
    if len(args) < 2:
        raise _CommandError(
            "Error: 'boost measure' requires <compose.yml> and <rtmr> arguments"
        )
    compose_path = args[0]
    rtmr_index = _parse_rtmr(args[1])
    compose_content = _read_compose(compose_path)

    print(f"Measuring volumes from: {compose_path}")
    print(f"Using RTMR index: {rtmr_index}")
    volumes_hash = lib.calculate_compose_volumes_hash(compose_content)
    print("Successfully measured Docker Compose volumes")
    print(boost.format_hex(_HASH_LABEL, volumes_hash))


def _boost_quote(lib: BoostLib, args: Sequence[str]) -> None:
    output_file = args[0] if args else DEFAULT_QUOTE_FILE
    print("Generating TDX quote...")
    try:
        result = lib.generate_quote()
    except BoostError as exc:
        raise _CommandError(f"Failed to generate quote: {exc.message}") from exc
    try:
        Path(output_file).write_bytes(result.quote_data)
    except OSError as exc:
        raise _CommandError(
            f"Error: Failed to write quote to file {output_file}: {exc.strerror or exc}"
        ) from exc
    print(
        f"TDX quote successfully saved to {output_file} "
        f"({len(result.quote_data)} bytes)"
    )


_BOOST_COMMANDS: dict[str, Callable[[BoostLib, Sequence[str]], None]] = {
    "start_app": _boost_start_app,
    "measure": _boost_measure,
    "quote": _boost_quote,
}


# -- key commands ----------------------------------------------------------


def _key_pubkey(tool: KeyTool) -> None:
    print("Deriving public key from TDX report...")
    try:
        public_key = tool.get_public_key_only()
    except KeyToolError as exc:
        raise _CommandError("Failed to get public key from TDX report") from exc
    print(key_tool.format_hex(_PUBKEY_LABEL, public_key))
    print()
    print("Public key successfully derived from TDX environment")


def _key_address(tool: KeyTool) -> None:
    print("Deriving Ethereum address from TDX report...")
    try:
        address = tool.get_address_only()
    except KeyToolError as exc:
        raise _CommandError("Failed to get Ethereum address from TDX report") from exc
    try:
        address_hex = key_tool.format_address_hex(address)
    except ValueError as exc:
        raise _CommandError("Failed to format address as hex") from exc
    print(key_tool.format_hex(_ADDRESS_LABEL, address))
    print(f"Ethereum Address (0x format): {address_hex}")
    print()
    print("Ethereum address successfully derived from TDX environment")


def _key_all(tool: KeyTool) -> None:
    print("Deriving public key and Ethereum address from TDX report...")
    try:
        result = tool.get_pubkey_from_report()
    except KeyToolError as exc:
        raise _CommandError(f"Failed to get keys from TDX report: {exc}") from exc
    print(key_tool.format_hex(_PUBKEY_LABEL, result.public_key))
    print(key_tool.format_hex(_ADDRESS_LABEL, result.eth_address))
    print(f"Ethereum Address (hex): {result.eth_address_hex}")
    print()
    print("Keys successfully derived from TDX environment")


_KEY_COMMANDS: dict[str, Callable[[KeyTool], None]] = {
    "pubkey": _key_pubkey,
    "address": _key_address,
    "all": _key_all,
}


# -- entry point -----------------------------------------------------------


def _run_boost(command: str, args: Sequence[str]) -> None:
    handler = _BOOST_COMMANDS.get(command)
    if handler is None:
        print(_usage())
        raise _CommandError(f"Unknown boost command: {command}")
    handler(BoostLib(), args)


def _run_key(command: str, args: Sequence[str]) -> None:
    handler = _KEY_COMMANDS.get(command)
    if handler is None:
        print(_usage())
        raise _CommandError(f"Unknown key command: {command}")
    handler(KeyTool())


_CATEGORIES: dict[str, Callable[[str, Sequence[str]], None]] = {
    "boost": _run_boost,
    "key": _run_key,
}


def main(argv: Sequence[str] | None = None) -> int:
    """Run the command line; return the process exit status."""
    args = list(sys.argv[1:] if argv is None else argv)
    if len(args) < 2:
        print(_usage())
        return 1

    category, command, *rest = args
    runner = _CATEGORIES.get(category)
    if runner is None:
        print(f"Unknown category: {category}", file=sys.stderr)
        print(_usage())
        return 1

    try:
        runner(command, rest)
    except _CommandError as exc:
        print(exc, file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())