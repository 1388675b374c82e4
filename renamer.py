"""
Recursos Suop - Renamer Module
==============================
Geracao de nomes de arquivo padronizados a partir dos dados extraidos.

Formato:  DATA_FAVORECIDO_[NUMERO_]VALOR_TIPO.ext
Exemplo:  25122024_JOAO SILVA_1234,56_NOTA FISCAL.pdf

Paginas do separador: DATA_Boleto_PagN.pdf (SEM_DATA quando nao ha data)

As funcoes deste modulo sao puras e nunca levantam excecao: campos
opcionais ausentes sao omitidos, nunca substituidos.
"""

import os
import re
from pathlib import Path
from typing import Optional, Union

from models import ExtractedData


# ==============================================================================
# CONFIGURACOES E CONSTANTES
# ==============================================================================

# Caracteres invalidos para nomes de arquivo (Windows)
INVALID_CHARS = r'[\\/:*?"<>|]'

# Rotulos especiais por categoria; as demais usam o nome em maiusculas
CATEGORY_LABELS = {
    "nota_fiscal": "NOTA FISCAL",
}

NO_DATE_TOKEN = "SEM_DATA"


# ==============================================================================
# SANITIZACAO
# ==============================================================================

def sanitize_name(text: Optional[str]) -> str:
    """
    Remove caracteres invalidos, apara e converte para maiusculas.

    Espacos internos sao mantidos ("JOAO  SILVA" continua com dois espacos).
    """
    if not text:
        return ""
    return re.sub(INVALID_CHARS, '', str(text)).strip().upper()


def sanitize_amount(text: Optional[str]) -> str:
    """Remove o separador de milhar: 1.234,56 -> 1234,56."""
    if not text:
        return ""
    return str(text).replace(".", "")


def category_label(category: Optional[str]) -> str:
    if not category:
        return ""
    category = str(category)
    return CATEGORY_LABELS.get(category, category.upper())


# ==============================================================================
# GERACAO DE NOMES
# ==============================================================================

def build_filename(
    extracted: Optional[ExtractedData],
    category: str,
    original_name: str
) -> str:
    """
    Constroi o nome de download de um item COMPLETE.

    Ordem fixa: data, favorecido, [numero do documento], valor, tipo.
    A extensao do arquivo original e preservada.

    Args:
        extracted: Dados extraidos (None devolve o nome original)
        category: Categoria do documento
        original_name: Nome original, usado para a extensao

    Returns:
        Nome do arquivo
    """
    if extracted is None:
        return original_name

    parts = [
        str(extracted.date or ""),
        sanitize_name(extracted.payee),
        sanitize_name(extracted.document_number),
        sanitize_amount(extracted.amount),
        category_label(category),
    ]
    filename = "_".join(part for part in parts if part)

    if "." in original_name:
        filename = f"{filename}.{original_name.rsplit('.', 1)[-1]}"
    return filename


def split_page_name(extracted: Optional[ExtractedData], page_index: int) -> str:
    """
    Nome de uma pagina separada: data de vencimento + numero da pagina.
    """
    date = str(extracted.date or "") if extracted is not None else ""
    date_part = date if len(date) == 8 else NO_DATE_TOKEN
    return f"{date_part}_Boleto_Pag{page_index}.pdf"


# ==============================================================================
# GRAVACAO EM DISCO
# ==============================================================================

def unique_path(directory: Union[str, Path], filename: str) -> Path:
    """
    Caminho livre dentro de `directory`.

    Se o nome ja existir, acrescenta _1, _2, ... antes da extensao.
    """
    target = Path(directory) / filename
    if not target.exists():
        return target

    base, ext = os.path.splitext(str(target))
    counter = 1
    while os.path.exists(f"{base}_{counter}{ext}"):
        counter += 1
    return Path(f"{base}_{counter}{ext}")
