import pytest

from tdxtapp.tdx import (
    EXTEND_DATA_LEN,
    MOCK_SIGNATURE,
    REPORT_DATA_SIZE,
    REPORT_SIZE,
    RtmrEvent,
    TdxError,
    extend_rtmr,
    get_quote,
    get_report,
)

PREFIX = bytes(
    [
        0x01, 0x23, 0x45, 0x67, 0x89, 0xAB, 0xCD, 0xEF,
        0xFE, 0xDC, 0xBA, 0x98, 0x76, 0x54, 0x32, 0x10,
        0xA5, 0xB7, 0xC9, 0xD1, 0xE3, 0xF5, 0x17, 0x29,
        0x3B, 0x4D, 0x5F, 0x71, 0x83, 0x95, 0xA7, 0xB9,
    ]
)


def test_report_size_and_prefix():
    report = get_report()
    assert len(report) == REPORT_SIZE == 1024
    assert report[:32] == PREFIX


def test_report_without_data_has_zero_data_field():
    report = get_report(None)
    assert report[32:32 + REPORT_DATA_SIZE] == bytes(REPORT_DATA_SIZE)


def test_report_embeds_report_data():
    data = bytes(range(REPORT_DATA_SIZE))
    report = get_report(data)
    assert report[32:96] == data


def test_short_report_data_is_zero_padded():
    report = get_report(b"abc")
    assert report[32:35] == b"abc"
    assert report[35:96] == bytes(61)


def test_report_tail_independent_of_data():
    assert get_report(b"\xff" * 64)[96:] == get_report()[96:]


def test_report_is_deterministic():
    first = get_report(b"nonce")
    second = get_report(b"nonce")
    assert first[:32] == PREFIX
    assert first[32:37] == b"nonce"
    assert first == second


def test_oversized_report_data_rejected():
    with pytest.raises(TdxError):
        get_report(bytes(REPORT_DATA_SIZE + 1))


def test_quote_layout():
    data = b"\x11" * 16
    quote = get_quote(data)
    assert len(quote) == REPORT_SIZE + 128
    assert quote[:REPORT_SIZE] == get_report(data)
    assert quote[REPORT_SIZE:REPORT_SIZE + 20] == b"MOCK_QUOTE_SIGNATURE"
    assert quote[REPORT_SIZE + len(MOCK_SIGNATURE):] == bytes(128 - 20)


def test_quote_oversized_data_rejected():
    with pytest.raises(TdxError):
        get_quote(bytes(100))


def test_quote_reports_its_size(capsys):
    get_quote()
    out = capsys.readouterr().out
    assert "[MOCK] Generated TDX quote (1152 bytes)" in out


@pytest.mark.parametrize("index", [0, 1, 2, 3])
def test_extend_valid_index(index, capsys):
    assert extend_rtmr(RtmrEvent(rtmr_index=index, extend_data=b"\x01" * 32)) is None
    assert f"Extended RTMR[{index}]" in capsys.readouterr().out


@pytest.mark.parametrize("index", [-1, 4, 100])
def test_extend_invalid_index(index):
    with pytest.raises(TdxError):
        extend_rtmr(RtmrEvent(rtmr_index=index))


def test_extend_invalid_version():
    with pytest.raises(TdxError):
        extend_rtmr(RtmrEvent(rtmr_index=0, version=2))


def test_extend_none_rejected():
    with pytest.raises(TdxError):
        extend_rtmr(None)


def test_event_pads_extend_data():
    event = RtmrEvent(rtmr_index=1, extend_data=b"\xaa" * 32)
    assert len(event.extend_data) == EXTEND_DATA_LEN
    assert event.extend_data[:32] == b"\xaa" * 32
    assert event.extend_data[32:] == bytes(16)


def test_event_rejects_oversized_extend_data():
    with pytest.raises(ValueError):
        RtmrEvent(extend_data=bytes(EXTEND_DATA_LEN + 1))


def test_event_defaults():
    event = RtmrEvent()
    assert event.version == 1
    assert event.event_data_size == 0
    assert event.extend_data == bytes(EXTEND_DATA_LEN)