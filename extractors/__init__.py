"""
Extractors Package
==================
Collaborators that call the vision-language model:
- Gemini document extractor (date, payee, amount)
- Payment code reader (boleto bar line + Pix payload)
"""

from .gemini_extractor import GeminiDocumentExtractor, GeminiStats
from .payment_codes import PaymentCodeReader

__all__ = [
    'GeminiDocumentExtractor',
    'GeminiStats',
    'PaymentCodeReader'
]
