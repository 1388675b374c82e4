"""
Gemini Document Extractor - Vision-Language Field Extraction
============================================================

Uses Google's Gemini models (google-genai) to read a receipt, boleto or
nota fiscal and return the fields used to rename the file:
- date (ddmmYYYY)
- payee (beneficiario / emitente)
- amount (1.234,56)
- document number (notas fiscais only)

This module is also the translation layer between the provider and the
batch queue. Provider failures leave here as typed errors:
- PasswordRequiredError: encrypted PDF, detected before any API call
- QuotaExceededError: APIError with code 429 or status RESOURCE_EXHAUSTED
- ExtractionError: everything else
"""

import asyncio
import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

from google import genai
from google.genai import errors, types

import config
import pdf_service
from exceptions import ExtractionError, PasswordRequiredError, QuotaExceededError
from models import ExtractedData, SourceFile

logger = logging.getLogger('suop.gemini')

QUOTA_STATUS = "RESOURCE_EXHAUSTED"
QUOTA_HTTP_CODE = 429


# =============================================================================
# PROMPTS
# =============================================================================

BASE_PROMPT = """Você é um assistente especializado em análise de documentos financeiros.
Sua função é extrair informações para renomeação de arquivos.

REGRAS GERAIS DE EXTRAÇÃO:
1. DATA (formato ddmmYYYY): Converta para apenas números.
2. NOME (Beneficiário/Emitente): MAIÚSCULAS. Mantenha espaços entre palavras. Remova pontuação (. , - /).
3. VALOR (Formato BR): Ex: 1.234,56. Mantenha a vírgula decimal.

CONTEXTO ESPECÍFICO DO TIPO "{category}":
"""

CATEGORY_PROMPTS = {
    "boleto": """
- DATA: CRÍTICO: Use a "Data de Vencimento". NÃO use a data de emissão ou processamento. Se não houver vencimento explícito, use a data do documento.
- NOME: Procure por "Beneficiário", "Cedente" ou a Razão Social de quem recebe.
- VALOR: Procure por "Valor do Documento" ou "Valor Cobrado".
""",
    "nota_fiscal": """
- DATA: CRÍTICO: Priorize a "Data de Vencimento" (faturas) ou "Data de Saída/Entrada". NÃO use a "Data de Emissão" a menos que não exista data de vencimento ou circulação.
- NOME: Procure por "Emitente", "Prestador de Serviços" ou "Razão Social".
- VALOR: Procure por "Valor Total da Nota" ou "Valor Líquido".
- NÚMERO: Informe o número da nota em "documentNumber", apenas dígitos.
""",
    "comprovante": """
- DATA: CRÍTICO: Priorize a "Data de Vencimento" (se disponível no detalhe do pagamento) ou "Data do Pagamento/Agendamento". NÃO use a "Data de Emissão" ou "Data de Impressão" do comprovante.
- NOME: Procure por "Beneficiário", "Favorecido", "Destino".
- VALOR: Procure por "Valor Pago", "Valor da Transação".
""",
}


def build_system_prompt(category: str) -> str:
    """Prompt for the category; custom categories use the receipt rules."""
    specific = CATEGORY_PROMPTS.get(category, CATEGORY_PROMPTS["comprovante"])
    return BASE_PROMPT.format(category=category.upper()) + specific


def build_response_schema(category: str) -> types.Schema:
    properties = {
        "date": types.Schema(
            type=types.Type.STRING,
            description="Data principal no formato ddmmYYYY",
        ),
        "beneficiary": types.Schema(
            type=types.Type.STRING,
            description="Nome limpo em MAIÚSCULAS (com espaços, sem símbolos)",
        ),
        "value": types.Schema(
            type=types.Type.STRING,
            description="Valor formatado em PT-BR (ex: 1.234,56)",
        ),
        "explanation": types.Schema(
            type=types.Type.STRING,
            description="Breve explicação da extração",
        ),
    }
    if category == "nota_fiscal":
        properties["documentNumber"] = types.Schema(
            type=types.Type.STRING,
            description="Número da nota fiscal, apenas dígitos",
        )

    return types.Schema(
        type=types.Type.OBJECT,
        properties=properties,
        required=["date", "beneficiary", "value"],
    )


# =============================================================================
# CLIENT AND ERROR TRANSLATION
# =============================================================================

def create_client(api_key: Optional[str] = None) -> genai.Client:
    """Create a Gemini client, failing early when no key is configured."""
    api_key = api_key or config.GEMINI_API_KEY
    if not api_key:
        raise ExtractionError("API Key not found in environment variables.")
    return genai.Client(api_key=api_key)


def is_quota_error(error: errors.APIError) -> bool:
    """Canonical rate-limit policy: HTTP 429 or RESOURCE_EXHAUSTED."""
    return error.code == QUOTA_HTTP_CODE or error.status == QUOTA_STATUS


def translate_api_error(error: errors.APIError) -> ExtractionError:
    """Map a provider error onto the typed errors the queue understands."""
    message = error.message or str(error)
    if is_quota_error(error):
        return QuotaExceededError(message)
    return ExtractionError(message)


def parse_json_text(text: Optional[str]) -> Dict[str, Any]:
    """Parse the model's JSON reply (tolerates a markdown fence)."""
    if not text:
        raise ExtractionError("No response from Gemini")

    cleaned = text.strip()
    if cleaned.startswith('```'):
        cleaned = re.sub(r'^```\w*\n?', '', cleaned)
        cleaned = re.sub(r'\n?```$', '', cleaned)

    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        logger.debug(f"Raw response: {cleaned[:500]}")
        raise ExtractionError(f"JSON parse error: {e}") from e

    if not isinstance(data, dict):
        raise ExtractionError("Unexpected response format from Gemini")
    return data


@dataclass
class GeminiStats:
    """Statistics for Gemini usage."""
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    quota_hits: int = 0
    total_tokens: int = 0

    @property
    def success_rate(self) -> float:
        if self.total_requests == 0:
            return 0.0
        return self.successful_requests / self.total_requests


def token_count(response: Any) -> int:
    usage = getattr(response, 'usage_metadata', None)
    return getattr(usage, 'total_token_count', 0) or 0


# =============================================================================
# EXTRACTOR
# =============================================================================

class GeminiDocumentExtractor:
    """
    Extraction collaborator used by the renamer and the splitter.

    Usage:
        extractor = GeminiDocumentExtractor()
        data = await extractor.extract(source_file, "boleto")
    """

    def __init__(
        self,
        client: Optional[genai.Client] = None,
        model: Optional[str] = None,
        api_key: Optional[str] = None
    ):
        self._client = client
        self._api_key = api_key
        self.model = model or config.GEMINI_MODEL
        self._stats = GeminiStats()

    @property
    def stats(self) -> GeminiStats:
        return self._stats

    @property
    def client(self) -> genai.Client:
        """Lazy client creation so a missing key only fails the item."""
        if self._client is None:
            self._client = create_client(self._api_key)
        return self._client

    async def extract(self, file: SourceFile, category: str) -> ExtractedData:
        """
        Extract renaming fields from a PDF or image.

        Raises:
            PasswordRequiredError, QuotaExceededError, ExtractionError
        """
        if file.is_pdf and await asyncio.to_thread(pdf_service.is_encrypted, file):
            logger.info(f"{file.name} is password protected")
            raise PasswordRequiredError()

        logger.info(f"Gemini extraction: {file.name} ({category}) using {self.model}")
        self._stats.total_requests += 1

        try:
            response = await self.client.aio.models.generate_content(
                model=self.model,
                contents=[
                    types.Part.from_bytes(data=file.data, mime_type=file.mime_type),
                    f"Analise este documento do tipo {category} e extraia os dados.",
                ],
                config=types.GenerateContentConfig(
                    system_instruction=build_system_prompt(category),
                    response_mime_type="application/json",
                    response_schema=build_response_schema(category),
                ),
            )
        except errors.APIError as e:
            self._stats.failed_requests += 1
            translated = translate_api_error(e)
            if isinstance(translated, QuotaExceededError):
                self._stats.quota_hits += 1
                logger.warning(f"Gemini quota signal for {file.name}: {e}")
            else:
                logger.error(f"Gemini Analysis Error: {e}")
            raise translated from e

        self._stats.total_tokens += token_count(response)

        try:
            data = parse_json_text(response.text)
        except ExtractionError:
            self._stats.failed_requests += 1
            raise

        self._stats.successful_requests += 1
        result = ExtractedData.from_mapping(data)
        logger.info(
            f"Gemini extraction successful: {file.name} -> "
            f"{result.date} | {result.payee} | {result.amount}"
        )
        return result
