"""
Payment Code Reader - Boleto bar line + Pix payload
===================================================

Two sources, each authoritative for one field:
1. Local QR decode (pyzbar) for the Pix "copia e cola" payload.
   Deterministic, zero hallucination.
2. Gemini, restricted to the numeric bar line (linha digitavel).

A quota signal from the model still propagates so the batch backs off;
any other model failure is logged and the Pix result is kept.
"""

import asyncio
import logging
from typing import Optional

from google import genai
from google.genai import errors, types

import barcode_extractor
import config
from exceptions import ExtractionError, QuotaExceededError
from extractors.gemini_extractor import (
    create_client,
    parse_json_text,
    translate_api_error,
)
from models import PaymentCodes, SourceFile

logger = logging.getLogger('suop.gemini.codes')

BARLINE_PROMPT = """
TAREFA: Extrair APENAS a Linha Digitável (Código de Barras Numérico) deste documento.

REGRAS:
1. Procure por sequências numéricas longas (47 ou 48 dígitos).
2. Ignore QR Codes ou códigos Pix (isso é feito externamente).
3. Retorne apenas JSON com o campo 'barCode'.
4. Se não encontrar, retorne null.
"""

BARLINE_SCHEMA = types.Schema(
    type=types.Type.OBJECT,
    properties={
        "barCode": types.Schema(
            type=types.Type.STRING,
            description="A linha digitável do boleto (47 ou 48 números). Null se não encontrado.",
        ),
    },
)


class PaymentCodeReader:
    """
    Usage:
        reader = PaymentCodeReader()
        codes = await reader.extract_codes(source_file)
        if codes.found:
            print(codes.bar_line, codes.pix_payload)
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

    @property
    def client(self) -> genai.Client:
        if self._client is None:
            self._client = create_client(self._api_key)
        return self._client

    async def read_pix(self, file: SourceFile) -> Optional[str]:
        payload = await asyncio.to_thread(barcode_extractor.read_qr_locally, file)
        return barcode_extractor.validate_pix_payload(payload)

    async def read_bar_line(self, file: SourceFile) -> Optional[str]:
        """
        Ask the model for the bar line only.

        Raises:
            QuotaExceededError: the provider asked us to slow down
            ExtractionError: any other model failure
        """
        try:
            response = await self.client.aio.models.generate_content(
                model=self.model,
                contents=[
                    types.Part.from_bytes(data=file.data, mime_type=file.mime_type),
                    "Extraia a linha digitável do boleto.",
                ],
                config=types.GenerateContentConfig(
                    system_instruction=BARLINE_PROMPT,
                    response_mime_type="application/json",
                    response_schema=BARLINE_SCHEMA,
                ),
            )
        except errors.APIError as e:
            raise translate_api_error(e) from e

        data = parse_json_text(response.text)
        digits = barcode_extractor.clean_bar_line(data.get("barCode"))
        if not barcode_extractor.is_plausible_bar_line(digits):
            if digits:
                logger.info(f"Discarding bar line with {len(digits)} digits from {file.name}")
            return None
        return digits

    async def extract_codes(self, file: SourceFile) -> PaymentCodes:
        pix_payload = await self.read_pix(file)

        bar_line = None
        try:
            bar_line = await self.read_bar_line(file)
        except QuotaExceededError:
            raise
        except ExtractionError as e:
            logger.error(f"Gemini Barcode Extraction Error ({file.name}): {e}")

        codes = PaymentCodes(bar_line=bar_line, pix_payload=pix_payload)
        logger.info(
            f"Payment codes for {file.name}: "
            f"bar_line={'yes' if bar_line else 'no'}, pix={'yes' if pix_payload else 'no'}"
        )
        return codes
