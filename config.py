"""
Config - Recursos Suop
======================
Central configuration for the batch renamer.
Contains queue timings, paths, Gemini settings and payment-code limits.
"""

import os
from pathlib import Path

# =============================================================================
# PATHS
# =============================================================================
BASE_DIR = Path(os.getcwd())
OUTPUT_DIR = BASE_DIR / "Output"
LOGS_DIR = BASE_DIR / "logs"

# =============================================================================
# GEMINI AI CONFIGURATION
# =============================================================================
GEMINI_API_KEY = os.environ.get("GEMINI_API_KEY", os.environ.get("API_KEY", ""))
GEMINI_MODEL = os.environ.get("GEMINI_MODEL", "gemini-2.5-flash")

# =============================================================================
# QUEUE TIMING (seconds)
# =============================================================================
PACING_DELAY_SECONDS = 5.0  # Between sequential extraction calls
COOLDOWN_SECONDS = 15.0  # Pause after a quota/rate-limit signal
# Off: after a quota pause the batch waits for the user to retry, as the
# web app did. True makes the cooldown timer start the queue again.
COOLDOWN_AUTO_RESUME = False
DOWNLOAD_STAGGER_SECONDS = 0.6
READY_NOTIFICATION_SECONDS = 5.0

# =============================================================================
# DOCUMENT CATEGORIES
# =============================================================================
DEFAULT_CATEGORY = "comprovante"
STANDARD_CATEGORIES = ("comprovante", "boleto", "nota_fiscal")
SPLITTER_CATEGORY = "boleto"

# =============================================================================
# PAYMENT CODES (Boleto / Pix)
# =============================================================================
PIX_PREFIX = "000201"
PIX_MIN_LENGTH = 20
BARLINE_MIN_DIGITS = 44
BARLINE_MAX_DIGITS = 48
QR_RENDER_ZOOM = 3.0  # ~216 DPI, enough for small QR codes
BARCODE_ACCEPTED_TYPES = (
    "application/pdf",
    "image/jpeg",
    "image/png",
    "image/webp",
)

# =============================================================================
# USER-FACING MESSAGES
# =============================================================================
MSG_INCORRECT_PASSWORD = "Senha incorreta. Tente novamente."
MSG_QUOTA_PAUSED = "Pausado: Limite da API atingido."
MSG_NO_CODE_FOUND = "Nenhum código encontrado."
MSG_PDF_ONLY = "Por favor, selecione apenas arquivos PDF."
MSG_ANALYSIS_FAILED = "Falha na análise"
