
import os
import sys

import pytest

# Ensure we can import from parent directory
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from models import ExtractedData
from renamer import (
    build_filename,
    category_label,
    sanitize_amount,
    sanitize_name,
    split_page_name,
    unique_path,
)


def extracted(**overrides):
    values = dict(date="25122024", payee="joão / silva", amount="1.234,56", original_amount="1.234,56")
    values.update(overrides)
    return ExtractedData(**values)


class TestSanitize:

    @pytest.mark.parametrize("raw, expected", [
        ("acme ltda", "ACME LTDA"),
        ('a:b*c?"d<e>f|g', "ABCDEFG"),
        ("  padaria  ", "PADARIA"),
        ("joão / silva", "JOÃO  SILVA"),
        (None, ""),
    ])
    def test_sanitize_name(self, raw, expected):
        assert sanitize_name(raw) == expected

    def test_sanitize_amount_drops_thousands_separator(self):
        assert sanitize_amount("1.234.567,89") == "1234567,89"
        assert sanitize_amount("") == ""

    def test_category_label(self):
        assert category_label("nota_fiscal") == "NOTA FISCAL"
        assert category_label("boleto") == "BOLETO"
        assert category_label("aluguel") == "ALUGUEL"


class TestBuildFilename:

    def test_nota_fiscal_example(self):
        name = build_filename(extracted(), "nota_fiscal", "scan.pdf")
        assert name == "25122024_JOÃO  SILVA_1234,56_NOTA FISCAL.pdf"

    def test_document_number_between_payee_and_amount(self):
        name = build_filename(extracted(payee="ACME", document_number="4521"), "nota_fiscal", "nf.pdf")
        assert name == "25122024_ACME_4521_1234,56_NOTA FISCAL.pdf"

    def test_keeps_original_extension(self):
        name = build_filename(extracted(payee="ACME"), "comprovante", "foto.jpeg")
        assert name == "25122024_ACME_1234,56_COMPROVANTE.jpeg"

    def test_original_without_extension(self):
        name = build_filename(extracted(payee="ACME"), "boleto", "arquivo")
        assert name == "25122024_ACME_1234,56_BOLETO"

    def test_empty_parts_are_omitted(self):
        name = build_filename(extracted(payee="///", amount=""), "boleto", "a.pdf")
        assert name == "25122024_BOLETO.pdf"

    def test_non_text_fields_are_converted(self):
        name = build_filename(extracted(date=25122024, payee="ACME", document_number=4521), "nota_fiscal", "nf.pdf")
        assert name == "25122024_ACME_4521_1234,56_NOTA FISCAL.pdf"

    def test_without_data_returns_original(self):
        assert build_filename(None, "boleto", "a.pdf") == "a.pdf"


class TestSplitPageName:

    def test_with_due_date(self):
        assert split_page_name(extracted(date="10032025"), 2) == "10032025_Boleto_Pag2.pdf"

    @pytest.mark.parametrize("date", ["", "N/A", "1032025"])
    def test_without_valid_date(self, date):
        assert split_page_name(extracted(date=date), 7) == "SEM_DATA_Boleto_Pag7.pdf"

    def test_without_data(self):
        assert split_page_name(None, 1) == "SEM_DATA_Boleto_Pag1.pdf"

    def test_numeric_date(self):
        assert split_page_name(extracted(date=10032025), 3) == "10032025_Boleto_Pag3.pdf"


class TestUniquePath:

    def test_free_name(self, tmp_path):
        assert unique_path(tmp_path, "a.pdf") == tmp_path / "a.pdf"

    def test_collisions_get_counter(self, tmp_path):
        (tmp_path / "a.pdf").write_bytes(b"1")
        (tmp_path / "a_1.pdf").write_bytes(b"2")
        assert unique_path(tmp_path, "a.pdf") == tmp_path / "a_2.pdf"
