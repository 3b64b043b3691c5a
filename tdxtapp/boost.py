"""Measurement of Docker Compose applications and TDX quote generation.

An application is measured as the SHA-256 of its compose file combined with a
hash over the contents of every host volume it mounts. The measurement is
either extended into an RTMR or kept in memory and embedded in the report
data of later quotes.
"""

from __future__ import annotations

import enum
import hashlib
import logging
import os
import secrets
import shutil
import stat
import subprocess
import tempfile
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from tdxtapp import tdx

HASH_LEN = 32
MAX_ADDITIONAL_REPORT_DATA = 32
APP_ROOT_LEN = 32
MAX_RTMR_INDEX = 3
TEST_MODE_ENV = "BOOST_TEST_MODE"

_CHUNK_SIZE = 8192

_log = logging.getLogger(__name__)


class ErrorCode(enum.IntEnum):
    """Reasons an operation of the library can fail."""

    INVALID_PARAM = -1
    FILE_NOT_FOUND = -2
    MEMORY_ALLOC = -3
    TDX_EXTEND = -4
    DOCKER_START = -5


class AttestationMode(enum.Enum):
    """How an application's measurement reaches the quote."""

    REPORT_DATA = 0
    RTMR = 1

    def __str__(self) -> str:
        return self.name


class BoostError(Exception):
    """Raised when an application cannot be measured, started or attested."""

    def __init__(self, code: ErrorCode, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


@dataclass(frozen=True)
class StartAppResult:
    """Outcome of a successful application start."""

    volumes_hash: bytes
    mode: AttestationMode
    app_identifier: str
    message: str = "Successfully started application and prepared attestation"


@dataclass(frozen=True)
class QuoteResult:
    """A generated TDX quote."""

    quote_data: bytes
    message: str = "TDX quote generated successfully"


def format_hex(label: str, data: bytes) -> str:
    """Return a labelled hex dump on a single line."""
    data = bytes(data)
    return f"{label} ({len(data)} bytes):\n{data.hex()}"


def hash_file(file_path: str | os.PathLike[str]) -> bytes:
    """Return the SHA-256 of a file's contents; raise OSError if unreadable."""
    digest = hashlib.sha256()
    with open(file_path, "rb") as handle:
        for chunk in iter(lambda: handle.read(_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.digest()


def extract_volume_paths(compose_content: str) -> list[str]:
    """Return the host paths of bind-mounted volumes in compose content.

    Only entries under a ``volumes:`` key whose host part starts with ``/`` or
    ``.`` are returned; named volumes are skipped.
    """
    paths: list[str] = []
    in_volumes = False
    for raw_line in compose_content.split("\n"):
        line = raw_line.strip(" \t")
        if "volumes:" in line:
            in_volumes = True
            continue
        if in_volumes and line and line[0] != "-" and ":" in line:
            in_volumes = False
        if not (in_volumes and line.startswith("-")):
            continue
        volume_def = line[1:].lstrip(" \t")
        host_path, colon, _ = volume_def.partition(":")
        if colon and host_path and host_path[0] in "/.":
            _log.info("Found volume path: %s", host_path)
            paths.append(host_path)
    return paths


def _directory_digest(dir_path: str | os.PathLike[str]) -> bytes:
    with os.scandir(dir_path) as it:
        entries = sorted(it, key=lambda entry: entry.name)
    digest = hashlib.sha256()
    for entry in entries:
        digest.update(entry.name.encode())
        try:
            if entry.is_dir():
                digest.update(_directory_digest(entry.path))
                _log.debug("Added directory: %s", entry.name)
            elif entry.is_file():
                digest.update(hash_file(entry.path))
                _log.debug("Added file: %s", entry.name)
        except OSError as exc:
            _log.warning("Skipping %s: %s", entry.path, exc)
    return digest.digest()


def _start_docker_compose(compose_file: str) -> bool:
    if os.environ.get(TEST_MODE_ENV):
        _log.info("Docker Compose services started successfully (test mode)")
        return True

    commands = [
        ("docker", ["docker", "compose", "-f", compose_file, "up", "-d"]),
        ("docker-compose", ["docker-compose", "-f", compose_file, "up", "-d"]),
    ]
    for program, command in commands:
        if shutil.which(program) is None:
            _log.info("%s not found, skipping", " ".join(command[:-4]))
            continue
        _log.info("Executing: %s", " ".join(command))
        completed = subprocess.run(command, check=False)
        if completed.returncode == 0:
            _log.info("Docker Compose services started using %s", program)
            return True
        _log.warning("%s failed (exit code: %d)", program, completed.returncode)

    _log.error("Failed to start Docker Compose services with any available command")
    return False


class BoostLib:
    """Measures applications, starts them and produces attestation quotes."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._app_root = bytearray()
        self._ready = False
        self._mode = AttestationMode.REPORT_DATA
        self._app_identifier = ""
        self._timestamp: datetime | None = None
        self._rtmr_index = -1

    # -- measurement state -------------------------------------------------

    @property
    def attestation_mode(self) -> AttestationMode:
        """The attestation mode of the current measurement."""
        with self._lock:
            return self._mode

    @property
    def app_identifier(self) -> str:
        """The identifier of the measured application, or an empty string."""
        with self._lock:
            return self._app_identifier

    @property
    def measurement_timestamp(self) -> datetime | None:
        """When the current measurement was stored, if ever."""
        with self._lock:
            return self._timestamp

    def has_valid_measurement(self) -> bool:
        """Return True if a report-data measurement is ready for quotes."""
        with self._lock:
            return (
                self._mode is AttestationMode.REPORT_DATA
                and self._ready
                and bool(self._app_root)
            )

    def clear_measurement(self) -> None:
        """Wipe the stored measurement and reset the attestation mode."""
        with self._lock:
            self._app_root[:] = bytes(len(self._app_root))
            self._app_root.clear()
            self._ready = False
            self._app_identifier = ""
            self._mode = AttestationMode.REPORT_DATA
            self._rtmr_index = -1
        _log.info("Measurement data cleared from memory")

    def _store_measurement(
        self,
        measurement: bytes,
        mode: AttestationMode,
        app_id: str,
        rtmr_index: int = -1,
    ) -> None:
        with self._lock:
            self._app_root[:] = bytes(len(self._app_root))
            self._app_root = bytearray(measurement[:APP_ROOT_LEN].ljust(APP_ROOT_LEN, b"\x00"))
            self._ready = True
            self._mode = mode
            self._app_identifier = app_id
            self._rtmr_index = rtmr_index
            self._timestamp = datetime.now(timezone.utc)
        _log.info("Stored measurement: mode=%s app_id=%s", mode, app_id)

    def _prepare_report_data(self, additional: bytes) -> bytes:
        with self._lock:
            if not self._ready or not self._app_root:
                return bytes(tdx.REPORT_DATA_SIZE)
            app_root = bytes(self._app_root[:APP_ROOT_LEN]).ljust(APP_ROOT_LEN, b"\x00")
        extra = additional[:MAX_ADDITIONAL_REPORT_DATA]
        return (app_root + extra).ljust(tdx.REPORT_DATA_SIZE, b"\x00")

    # -- hashing -----------------------------------------------------------

    def calculate_directory_hash(self, dir_path: str | os.PathLike[str]) -> bytes:
        """Return a SHA-256 over a directory tree, entries sorted by name."""
        try:
            return _directory_digest(dir_path)
        except OSError as exc:
            raise BoostError(
                ErrorCode.FILE_NOT_FOUND,
                f"Failed to process directory {dir_path}: {exc}",
            ) from exc

    def calculate_compose_volumes_hash(self, compose_content: str) -> bytes:
        """Return a SHA-256 over the contents of every host volume mounted.

        A path that is missing, unreadable or neither a file nor a directory
        contributes its own name instead of its contents.
        """
        volume_paths = extract_volume_paths(compose_content)
        digest = hashlib.sha256()
        if not volume_paths:
            _log.info("No host volumes found in compose content, using empty hash")
            return digest.digest()

        for number, path in enumerate(volume_paths, start=1):
            _log.info("[%d] Processing volume: %s", number, path)
            digest.update(self._volume_digest(path))
        return digest.digest()

    def _volume_digest(self, path: str) -> bytes:
        try:
            mode = os.stat(path).st_mode
        except OSError as exc:
            _log.warning("Cannot access volume path %s: %s", path, exc)
            return path.encode()
        try:
            if stat.S_ISDIR(mode):
                return self.calculate_directory_hash(path)
            if stat.S_ISREG(mode):
                return hash_file(path)
        except (BoostError, OSError) as exc:
            _log.warning("Failed to hash %s: %s", path, exc)
            return path.encode()
        _log.warning("%s is neither file nor directory", path)
        return path.encode()

    # -- operations --------------------------------------------------------

    def start_app(
        self,
        compose_content: str,
        mode: AttestationMode = AttestationMode.REPORT_DATA,
        rtmr_index: int = 0,
    ) -> StartAppResult:
        """Measure an application, record the measurement and start it."""
        if not compose_content:
            raise BoostError(ErrorCode.INVALID_PARAM, "Empty compose content")
        if mode is AttestationMode.RTMR and not 0 <= rtmr_index <= MAX_RTMR_INDEX:
            raise BoostError(
                ErrorCode.INVALID_PARAM, f"Invalid RTMR index: {rtmr_index}"
            )

        try:
            with tempfile.NamedTemporaryFile(
                "w", prefix="docker-compose-", suffix=".yml", delete=False
            ) as handle:
                handle.write(compose_content)
                compose_file = handle.name
        except OSError as exc:
            raise BoostError(
                ErrorCode.FILE_NOT_FOUND, "Failed to create temporary compose file"
            ) from exc

        try:
            _log.info("Starting application in %s mode from %s", mode, compose_file)
            compose_hash = hashlib.sha256(compose_content.encode()).digest()
            volumes_hash = self.calculate_compose_volumes_hash(compose_content)
            measurement = hashlib.sha256(compose_hash + volumes_hash).digest()
            app_id = f"app-{int(time.time())}"

            if mode is AttestationMode.RTMR:
                event = tdx.RtmrEvent(rtmr_index=rtmr_index, extend_data=measurement)
                try:
                    tdx.extend_rtmr(event)
                except tdx.TdxError as exc:
                    raise BoostError(
                        ErrorCode.TDX_EXTEND, f"Failed to extend RTMR{rtmr_index}"
                    ) from exc
                self._store_measurement(measurement, mode, app_id, rtmr_index)
            else:
                self._store_measurement(measurement, mode, app_id)

            if not _start_docker_compose(compose_file):
                raise BoostError(
                    ErrorCode.TDX_EXTEND, "Failed to start Docker Compose services"
                )
        finally:
            Path(compose_file).unlink(missing_ok=True)

        return StartAppResult(
            volumes_hash=measurement, mode=mode, app_identifier=app_id
        )

    def generate_quote(self, report_data: bytes = b"") -> QuoteResult:
        """Generate a quote carrying the measurement and up to 32 extra bytes.

        In RTMR mode the extra bytes, or a random nonce when none are given,
        form the report data. In report-data mode the stored measurement is
        followed by the extra bytes.
        """
        additional = bytes(report_data)
        if len(additional) > MAX_ADDITIONAL_REPORT_DATA:
            raise BoostError(
                ErrorCode.INVALID_PARAM,
                f"Additional report data size ({len(additional)}) exceeds "
                f"maximum ({MAX_ADDITIONAL_REPORT_DATA} bytes)",
            )

        with self._lock:
            mode = self._mode
            app_id = self._app_identifier
        _log.info("Generating quote in %s mode for %r", mode, app_id)

        if mode is AttestationMode.RTMR:
            if additional:
                tdx_report_data = additional.ljust(tdx.REPORT_DATA_SIZE, b"\x00")
            else:
                tdx_report_data = secrets.token_bytes(tdx.REPORT_DATA_SIZE)
        else:
            tdx_report_data = self._prepare_report_data(additional)

        try:
            quote = tdx.get_quote(tdx_report_data)
        except tdx.TdxError as exc:
            raise BoostError(ErrorCode.TDX_EXTEND, "Failed to get TDX quote") from exc
        return QuoteResult(quote_data=quote)