
import asyncio
import os
import sys
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from google.genai import errors

# Ensure we can import from parent directory
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from exceptions import ExtractionError, PasswordRequiredError, QuotaExceededError
from extractors.gemini_extractor import (
    GeminiDocumentExtractor,
    build_response_schema,
    build_system_prompt,
    create_client,
    is_quota_error,
    parse_json_text,
    translate_api_error,
)
from models import DEFAULT_AMOUNT, DEFAULT_PAYEE, ExtractedData, SourceFile, today_ddmmyyyy


def api_error(error_class, code, status, message="erro"):
    return error_class(code, {"error": {"code": code, "message": message, "status": status}})


def mock_client(text=None, side_effect=None):
    client = MagicMock()
    response = SimpleNamespace(text=text, usage_metadata=SimpleNamespace(total_token_count=42))
    client.aio.models.generate_content = AsyncMock(return_value=response, side_effect=side_effect)
    return client


IMAGE = SourceFile("recibo.png", b"\x89PNG", "image/png")


class TestPrompts:

    def test_known_category(self):
        prompt = build_system_prompt("boleto")
        assert '"BOLETO"' in prompt
        assert "Data de Vencimento" in prompt

    def test_custom_category_uses_receipt_rules(self):
        prompt = build_system_prompt("aluguel")
        assert '"ALUGUEL"' in prompt
        assert "Valor Pago" in prompt

    def test_document_number_only_for_nota_fiscal(self):
        assert "documentNumber" in build_response_schema("nota_fiscal").properties
        assert "documentNumber" not in build_response_schema("boleto").properties
        assert build_response_schema("boleto").required == ["date", "beneficiary", "value"]


class TestErrorTranslation:

    def test_http_429_is_quota(self):
        error = api_error(errors.ClientError, 429, "RESOURCE_EXHAUSTED")
        assert is_quota_error(error)
        assert isinstance(translate_api_error(error), QuotaExceededError)

    def test_resource_exhausted_status_is_quota(self):
        error = api_error(errors.ClientError, 400, "RESOURCE_EXHAUSTED")
        assert is_quota_error(error)

    def test_other_errors_are_plain_extraction_errors(self):
        error = api_error(errors.ServerError, 500, "INTERNAL", message="internal")
        translated = translate_api_error(error)
        assert not isinstance(translated, QuotaExceededError)
        assert isinstance(translated, ExtractionError)
        assert str(translated) == "internal"


class TestParseJson:

    def test_plain_json(self):
        assert parse_json_text('{"date": "01012025"}') == {"date": "01012025"}

    def test_markdown_fence(self):
        assert parse_json_text('```json\n{"value": "1,00"}\n```') == {"value": "1,00"}

    @pytest.mark.parametrize("text", [None, "", "not json", "[1, 2]"])
    def test_invalid(self, text):
        with pytest.raises(ExtractionError):
            parse_json_text(text)


def test_missing_api_key():
    with patch("config.GEMINI_API_KEY", ""):
        with pytest.raises(ExtractionError, match="API Key not found"):
            create_client()


class TestExtract:

    def test_successful_extraction(self):
        client = mock_client(
            '{"date": "25122024", "beneficiary": "ACME LTDA", "value": "1.234,56", '
            '"documentNumber": "4521"}'
        )
        extractor = GeminiDocumentExtractor(client=client, model="gemini-test")

        result = asyncio.run(extractor.extract(IMAGE, "nota_fiscal"))

        assert isinstance(result, ExtractedData)
        assert result.payee == "ACME LTDA"
        assert result.amount == "1.234,56"
        assert result.document_number == "4521"
        assert extractor.stats.successful_requests == 1
        assert extractor.stats.total_tokens == 42

        kwargs = client.aio.models.generate_content.call_args.kwargs
        assert kwargs["model"] == "gemini-test"
        assert kwargs["config"].response_mime_type == "application/json"

    def test_empty_fields_get_defaults(self):
        client = mock_client('{"date": "", "beneficiary": "", "value": ""}')
        result = asyncio.run(GeminiDocumentExtractor(client=client).extract(IMAGE, "boleto"))

        assert result.date == today_ddmmyyyy()
        assert result.payee == DEFAULT_PAYEE
        assert result.amount == DEFAULT_AMOUNT

    def test_empty_response(self):
        client = mock_client(None)
        with pytest.raises(ExtractionError, match="No response from Gemini"):
            asyncio.run(GeminiDocumentExtractor(client=client).extract(IMAGE, "boleto"))

    def test_quota_error_is_typed(self):
        client = mock_client(side_effect=api_error(errors.ClientError, 429, "RESOURCE_EXHAUSTED"))
        extractor = GeminiDocumentExtractor(client=client)

        with pytest.raises(QuotaExceededError):
            asyncio.run(extractor.extract(IMAGE, "boleto"))
        assert extractor.stats.quota_hits == 1

    def test_encrypted_pdf_needs_password(self, pdf_factory):
        client = mock_client('{}')
        extractor = GeminiDocumentExtractor(client=client)

        with pytest.raises(PasswordRequiredError):
            asyncio.run(extractor.extract(pdf_factory(password="1234"), "boleto"))
        client.aio.models.generate_content.assert_not_called()

    def test_plain_pdf_is_sent(self, pdf_factory):
        client = mock_client('{"date": "01022025", "beneficiary": "X", "value": "1,00"}')
        result = asyncio.run(GeminiDocumentExtractor(client=client).extract(pdf_factory(), "boleto"))
        assert result.date == "01022025"
        client.aio.models.generate_content.assert_awaited_once()
