"""
Barcode Extractor - Deterministic QR decoding for Pix payloads.

Uses pyzbar for reliable QR decoding. The extraction model hallucinates
long payloads, so the Pix "copia e cola" string is only ever taken from a
local decode.

Also carries the boleto bar-line helpers (linha digitavel):
- cleaning and length checks (44-48 digits)
- due date from the date factor (base 1997-10-07)
- amount from the value field

Usage:
    from barcode_extractor import read_qr_locally

    payload = read_qr_locally(source_file)
"""

import io
import logging
import re
from datetime import datetime, timedelta
from typing import Optional

from PIL import Image

import config
from models import SourceFile

logger = logging.getLogger('suop.barcode')

BARLINE_BASE_DATE = datetime(1997, 10, 7)
BARLINE_ROLLOVER_DATE = datetime(2025, 2, 22)

_pyzbar_available: Optional[bool] = None


def is_available() -> bool:
    """Check if pyzbar (and the zbar shared library) can be loaded."""
    global _pyzbar_available
    if _pyzbar_available is not None:
        return _pyzbar_available

    try:
        from pyzbar import pyzbar  # noqa: F401
        _pyzbar_available = True
        logger.info("pyzbar available for QR decoding")
    except ImportError:
        logger.warning("pyzbar not installed. Run: pip install pyzbar")
        _pyzbar_available = False

    return _pyzbar_available


def decode_qr(image: Image.Image) -> Optional[str]:
    """
    Decode the first QR code found in the image.

    Returns:
        Decoded text or None
    """
    if not is_available():
        return None

    from pyzbar.pyzbar import ZBarSymbol, decode

    for symbol in decode(image, symbols=[ZBarSymbol.QRCODE]):
        try:
            return symbol.data.decode('utf-8')
        except UnicodeDecodeError:
            logger.debug("QR payload is not UTF-8, skipping")
    return None


def read_qr_locally(file: SourceFile) -> Optional[str]:
    """
    Read a QR code from an image or from the first page of a PDF.

    Any failure (unreadable image, PDF that does not render) yields None:
    the caller still has the model-based bar-line read.
    """
    # Imported here: pdf_service pulls in PyMuPDF
    import pdf_service

    try:
        image_file = file
        if file.is_pdf:
            image_file = pdf_service.render_first_page(file, zoom=config.QR_RENDER_ZOOM)

        with Image.open(io.BytesIO(image_file.data)) as image:
            return decode_qr(image.convert("RGB"))
    except Exception as e:
        logger.warning(f"Erro na leitura local do QR ({file.name}): {e}")
        return None


def validate_pix_payload(payload: Optional[str]) -> Optional[str]:
    """
    Pix "copia e cola" starts with 000201. Other QR codes are kept only
    when they are long enough to be a payment payload.
    """
    if not payload:
        return None
    payload = payload.strip()
    if payload.startswith(config.PIX_PREFIX):
        return payload
    if len(payload) < config.PIX_MIN_LENGTH:
        return None
    return payload


# =============================================================================
# LINHA DIGITAVEL
# =============================================================================

def clean_bar_line(raw: Optional[str]) -> str:
    """Keep digits only."""
    return re.sub(r'\D', '', raw or '')


def is_plausible_bar_line(raw: Optional[str]) -> bool:
    """Length check for barcode (44) / linha digitavel (47 or 48) digits."""
    digits = clean_bar_line(raw)
    return config.BARLINE_MIN_DIGITS <= len(digits) <= config.BARLINE_MAX_DIGITS


def due_date_from_bar_line(raw: str) -> Optional[str]:
    """
    Extract due date from a 47-digit linha digitavel.

    Returns:
        Due date as ddmmYYYY or None
    """
    digits = clean_bar_line(raw)
    if len(digits) != 47:
        return None

    # Date factor is in positions 34-37 (4 digits)
    date_factor = int(digits[33:37])
    if date_factor == 0:
        return None

    due_date = BARLINE_BASE_DATE + timedelta(days=date_factor)
    # Factor 9999 was reached on 21/02/2025 and restarted at 1000
    if due_date < BARLINE_ROLLOVER_DATE and date_factor >= 1000:
        due_date = BARLINE_ROLLOVER_DATE + timedelta(days=date_factor - 1000)
    return due_date.strftime("%d%m%Y")


def amount_from_bar_line(raw: str) -> Optional[str]:
    """
    Extract the amount from a 47-digit linha digitavel.

    Returns:
        Amount formatted as 1.234,56 or None when zero
    """
    digits = clean_bar_line(raw)
    if len(digits) != 47:
        return None

    # Value is in positions 38-47 (10 digits, last 2 are cents)
    cents = int(digits[37:47])
    if cents == 0:
        return None

    formatted = f"{cents / 100:,.2f}"
    return formatted.replace(",", "@").replace(".", ",").replace("@", ".")
