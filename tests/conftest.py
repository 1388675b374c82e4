
import os
import sys

import fitz  # PyMuPDF
import pytest

# Ensure we can import from parent directory
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from models import SourceFile


def build_pdf(pages=3, name="documento.pdf", password=None):
    """In-memory PDF with one line of text per page."""
    doc = fitz.open()
    for index in range(pages):
        page = doc.new_page()
        page.insert_text((72, 72), f"Pagina {index + 1}")

    if password:
        data = doc.tobytes(
            encryption=fitz.PDF_ENCRYPT_AES_256,
            owner_pw=password,
            user_pw=password,
        )
    else:
        data = doc.tobytes()
    doc.close()
    return SourceFile(name, data, "application/pdf")


@pytest.fixture
def pdf_factory():
    return build_pdf
