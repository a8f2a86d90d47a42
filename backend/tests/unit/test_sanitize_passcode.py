import pytest

from app.core.config import EditorConfig
from app.core.passcode import check_editor_passcode
from app.core.sanitize import strip_html


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("<p>Hello <b>reef</b></p>", "Hello reef"),
        ("&lt;script&gt;alert(1)&lt;/script&gt;Title", "alert(1)Title"),
        ("Salinity < 35 & rising", "Salinity < 35 & rising"),
        ("  padded  ", "padded"),
        (None, ""),
    ],
)
def test_strip_html(raw, expected):
    assert strip_html(raw) == expected


def _cfg(passcode):
    return EditorConfig(passcode=passcode, pdf_max_bytes=1, submission_file_max_bytes=1)


def test_passcode_match():
    assert check_editor_passcode("tide-2026", _cfg("tide-2026")) is True


def test_passcode_mismatch_or_missing():
    assert check_editor_passcode("wrong", _cfg("tide-2026")) is False
    assert check_editor_passcode(None, _cfg("tide-2026")) is False
    assert check_editor_passcode("", _cfg("tide-2026")) is False


def test_passcode_channel_closed_when_unconfigured():
    assert check_editor_passcode("anything", _cfg(None)) is False
