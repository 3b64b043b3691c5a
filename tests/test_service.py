import pytest

from tdxtapp.boost import AttestationMode, TEST_MODE_ENV
from tdxtapp.key_tool import KeyTool, format_address_hex
from tdxtapp.service import (
    PubkeyResponse,
    QuoteResponse,
    StartAppResponse,
    TappService,
)

SAMPLE_COMPOSE = """
version: '3.8'
services:
  test-app:
    image: hello-world
    volumes:
      - ./data:/app/data
    environment:
      - TEST_MODE=true
"""


@pytest.fixture
def app_dir(tmp_path, monkeypatch):
    data = tmp_path / "data"
    data.mkdir()
    (data / "file.txt").write_text("content")
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv(TEST_MODE_ENV, "1")
    return tmp_path


@pytest.fixture
def service():
    return TappService()


def test_start_app_empty_content(service):
    response = service.start_app("")
    assert response == StartAppResponse(False, "Empty compose content provided")


def test_start_app_report_mode(service, app_dir):
    response = service.start_app(SAMPLE_COMPOSE, AttestationMode.REPORT_DATA)
    assert response.success is True
    assert len(response.volumes_hash) == 32
    assert response.message == (
        "Successfully started application and prepared attestation"
    )
    assert service.boost_lib.has_valid_measurement() is True


def test_start_app_invalid_rtmr_defaults(service, app_dir):
    response = service.start_app(SAMPLE_COMPOSE, AttestationMode.RTMR, -1)
    assert response.success is True
    assert len(response.volumes_hash) == 32
    assert service.boost_lib.attestation_mode is AttestationMode.RTMR


def test_start_app_mode_as_integer(service, app_dir):
    response = service.start_app(SAMPLE_COMPOSE, 1, 2)
    assert response.success is True
    assert service.boost_lib.attestation_mode is AttestationMode.RTMR


def test_start_app_same_content_same_hash(service, app_dir):
    first = service.start_app(SAMPLE_COMPOSE)
    second = service.start_app(SAMPLE_COMPOSE)
    assert first.volumes_hash == second.volumes_hash


def test_start_app_docker_missing(service, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv(TEST_MODE_ENV, raising=False)
    monkeypatch.setenv("PATH", str(tmp_path))
    response = service.start_app(SAMPLE_COMPOSE)
    assert response.success is False
    assert response.message == "Failed to start Docker Compose services"
    assert response.volumes_hash == b""


def test_get_quote_default(service):
    response = service.get_quote()
    assert response.success is True
    assert response.quote_size == len(response.quote_data)
    assert response.quote_size == 1024 + 128
    assert response.message == "TDX quote generated successfully"


def test_get_quote_custom_data(service):
    response = service.get_quote(b"test_report_data_12345")
    assert response.success is True
    assert response.quote_size > 0
    assert len(response.quote_data) == response.quote_size


def test_get_quote_too_much_data(service):
    response = service.get_quote(bytes(33))
    assert response.success is False
    assert response.quote_size == 0
    assert response.quote_data == b""
    assert "exceeds maximum" in response.message


def test_quote_embeds_measurement(service, app_dir):
    started = service.start_app(SAMPLE_COMPOSE)
    extra = b"nonce"
    response = service.get_quote(extra)
    assert isinstance(response, QuoteResponse)
    assert response.quote_data[32:64] == started.volumes_hash
    assert response.quote_data[64:64 + len(extra)] == extra


def test_quote_in_rtmr_mode_uses_caller_data(service, app_dir):
    service.start_app(SAMPLE_COMPOSE, AttestationMode.RTMR, 3)
    extra = bytes(range(1, 33))
    response = service.get_quote(extra)
    assert response.quote_data[32:64] == extra


def test_get_pubkey(service):
    response = service.get_pubkey()
    assert isinstance(response, PubkeyResponse)
    assert response.success is True
    assert len(response.public_key) == 64
    assert len(response.eth_address) == 20
    assert len(response.eth_address_hex) == 42
    assert response.eth_address_hex == format_address_hex(response.eth_address)
    assert response.eth_address == KeyTool().get_address_only()


def test_get_pubkey_consistent(service):
    assert service.get_pubkey() == service.get_pubkey()
    assert TappService().get_pubkey() == service.get_pubkey()