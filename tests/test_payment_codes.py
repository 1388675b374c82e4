
import asyncio
import os
import sys
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from google.genai import errors

# Ensure we can import from parent directory
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from exceptions import QuotaExceededError
from extractors.payment_codes import PaymentCodeReader
from models import SourceFile

BOLETO = SourceFile("boleto.png", b"\x89PNG", "image/png")
PIX = "00020126580014br.gov.bcb.pix0136123e4567-e12b-12d1-a456-4266554400005204000053039865802BR"
LINE = "23790.12345 60000.000005 12345.678901 1 15000000123456"


def reader_returning(text=None, side_effect=None):
    client = MagicMock()
    client.aio.models.generate_content = AsyncMock(
        return_value=SimpleNamespace(text=text), side_effect=side_effect
    )
    return PaymentCodeReader(client=client)


def test_both_codes_found():
    reader = reader_returning('{"barCode": "%s"}' % LINE)

    with patch("barcode_extractor.read_qr_locally", return_value=PIX):
        codes = asyncio.run(reader.extract_codes(BOLETO))

    assert codes.found
    assert codes.pix_payload == PIX
    assert codes.bar_line == "23790123456000000000512345678901115000000123456"


def test_implausible_bar_line_is_dropped():
    reader = reader_returning('{"barCode": "123456"}')

    with patch("barcode_extractor.read_qr_locally", return_value=None):
        codes = asyncio.run(reader.extract_codes(BOLETO))

    assert not codes.found


def test_null_bar_line():
    reader = reader_returning('{"barCode": null}')

    with patch("barcode_extractor.read_qr_locally", return_value=PIX):
        codes = asyncio.run(reader.extract_codes(BOLETO))

    assert codes.bar_line is None
    assert codes.pix_payload == PIX


def test_model_failure_keeps_pix():
    error = errors.ServerError(500, {"error": {"code": 500, "message": "boom", "status": "INTERNAL"}})
    reader = reader_returning(side_effect=error)

    with patch("barcode_extractor.read_qr_locally", return_value=PIX):
        codes = asyncio.run(reader.extract_codes(BOLETO))

    assert codes.pix_payload == PIX
    assert codes.bar_line is None


def test_quota_propagates():
    error = errors.ClientError(429, {"error": {"code": 429, "message": "quota", "status": "RESOURCE_EXHAUSTED"}})
    reader = reader_returning(side_effect=error)

    with patch("barcode_extractor.read_qr_locally", return_value=PIX):
        with pytest.raises(QuotaExceededError):
            asyncio.run(reader.extract_codes(BOLETO))


def test_short_qr_is_not_pix():
    reader = reader_returning('{"barCode": null}')

    with patch("barcode_extractor.read_qr_locally", return_value="LOJA-42"):
        codes = asyncio.run(reader.extract_codes(BOLETO))

    assert not codes.found
