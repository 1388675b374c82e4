
import os
import sys

import pytest

# Ensure we can import from parent directory
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import barcode_extractor
from models import SourceFile


def bar_line(factor="1500", cents="0000123456"):
    """47-digit linha digitavel with the given date factor and value."""
    return "2379" + "0" * 29 + factor + cents


class TestPixPayload:

    def test_pix_prefix_is_accepted(self):
        assert barcode_extractor.validate_pix_payload(" 000201010212 ") == "000201010212"

    def test_long_payload_without_prefix_is_kept(self):
        payload = "https://pix.example.com/qr/v2/abcdef"
        assert barcode_extractor.validate_pix_payload(payload) == payload

    @pytest.mark.parametrize("payload", [None, "", "short-qr"])
    def test_rejected(self, payload):
        assert barcode_extractor.validate_pix_payload(payload) is None


class TestBarLine:

    def test_clean_keeps_digits(self):
        assert barcode_extractor.clean_bar_line("23790.12345 60000.000005") == "237901234560000000005"
        assert barcode_extractor.clean_bar_line(None) == ""

    @pytest.mark.parametrize("digits, plausible", [
        (44, True),
        (47, True),
        (48, True),
        (43, False),
        (49, False),
    ])
    def test_plausible_length(self, digits, plausible):
        assert barcode_extractor.is_plausible_bar_line("1" * digits) is plausible

    def test_due_date_after_factor_rollover(self):
        assert barcode_extractor.due_date_from_bar_line(bar_line(factor="1000")) == "22022025"
        assert barcode_extractor.due_date_from_bar_line(bar_line(factor="1500")) == "07072026"

    def test_due_date_missing(self):
        assert barcode_extractor.due_date_from_bar_line(bar_line(factor="0000")) is None
        assert barcode_extractor.due_date_from_bar_line("1" * 44) is None

    def test_amount(self):
        assert barcode_extractor.amount_from_bar_line(bar_line()) == "1.234,56"
        assert barcode_extractor.amount_from_bar_line(bar_line(cents="0000000050")) == "0,50"
        assert barcode_extractor.amount_from_bar_line(bar_line(cents="0" * 10)) is None


def test_unreadable_image_yields_none():
    file = SourceFile("qr.png", b"not an image", "image/png")
    assert barcode_extractor.read_qr_locally(file) is None


def test_unreadable_pdf_yields_none():
    file = SourceFile("boleto.pdf", b"garbage", "application/pdf")
    assert barcode_extractor.read_qr_locally(file) is None
