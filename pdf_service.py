"""
Recursos Suop - PDF Service
===========================
Operacoes de PDF usadas pelo renomeador, separador e leitor de codigos.

- Deteccao de senha e desbloqueio (gera um novo arquivo sem criptografia)
- Separacao pagina a pagina
- Recorte de intervalos de paginas ("1-3, 5")
- Renderizacao da primeira pagina como imagem (leitura de QR Code)

Todas as funcoes recebem e devolvem SourceFile (bytes em memoria).
"""

import io
import logging
from typing import List

import fitz  # PyMuPDF
from PIL import Image

import config
from exceptions import IncorrectPasswordError, PdfProcessingError
from models import SourceFile

logger = logging.getLogger('suop.pdf')

PDF_MIME = "application/pdf"


def _open(file: SourceFile) -> fitz.Document:
    return fitz.open(stream=file.data, filetype="pdf")


def is_encrypted(file: SourceFile) -> bool:
    """
    Verifica se o PDF precisa de senha para ser lido.

    Arquivos corrompidos nao sao considerados protegidos: o extrator
    recebe o arquivo e reporta o erro real.
    """
    try:
        with _open(file) as doc:
            return bool(doc.needs_pass)
    except Exception as e:
        logger.debug(f"Could not inspect {file.name} for encryption: {e}")
        return False


def unlock_pdf(file: SourceFile, password: str) -> SourceFile:
    """
    Desbloqueia o PDF com a senha informada.

    Returns:
        Novo SourceFile com o mesmo nome e conteudo descriptografado

    Raises:
        IncorrectPasswordError: senha errada ou arquivo ilegivel
    """
    try:
        with _open(file) as doc:
            if doc.needs_pass and not doc.authenticate(password):
                raise IncorrectPasswordError("Senha incorreta ou falha ao desbloquear.")
            data = doc.tobytes(encryption=fitz.PDF_ENCRYPT_NONE, garbage=1)
    except IncorrectPasswordError:
        logger.warning(f"Wrong password for {file.name}")
        raise
    except Exception as e:
        logger.error(f"Erro ao desbloquear PDF {file.name}: {e}")
        raise IncorrectPasswordError("Senha incorreta ou falha ao desbloquear.") from e

    logger.info(f"Unlocked {file.name}")
    return SourceFile(name=file.name, data=data, mime_type=PDF_MIME)


def page_count(file: SourceFile) -> int:
    try:
        with _open(file) as doc:
            if doc.needs_pass:
                raise PdfProcessingError("Não foi possível ler o arquivo PDF.")
            return doc.page_count
    except PdfProcessingError:
        raise
    except Exception as e:
        raise PdfProcessingError("Não foi possível ler o arquivo PDF.") from e


def split_pages(file: SourceFile) -> List[SourceFile]:
    """
    Separa o PDF em um arquivo por pagina (<base>_Pagina_<n>.pdf).
    """
    base_name = file.stem
    pages: List[SourceFile] = []

    try:
        with _open(file) as doc:
            if doc.needs_pass:
                raise ValueError("encrypted")

            for index in range(doc.page_count):
                with fitz.open() as single:
                    single.insert_pdf(doc, from_page=index, to_page=index)
                    pages.append(SourceFile(
                        name=f"{base_name}_Pagina_{index + 1}.pdf",
                        data=single.tobytes(garbage=1),
                        mime_type=PDF_MIME
                    ))
    except Exception as e:
        logger.error(f"Error splitting PDF {file.name}: {e}")
        raise PdfProcessingError(
            "Falha ao separar o PDF. Verifique se o arquivo não está "
            "corrompido ou protegido por senha."
        ) from e

    logger.info(f"Split {file.name} into {len(pages)} page(s)")
    return pages


def parse_page_range(text: str) -> List[int]:
    """
    Converte "1-3, 5" em [1, 2, 3, 5].

    Intervalos invertidos ("5-2") sao normalizados; trechos invalidos sao
    ignorados. Resultado ordenado e sem repeticoes.
    """
    pages = set()
    for part in (text or "").split(","):
        part = part.strip()
        if not part:
            continue

        if "-" in part:
            start_text, _, end_text = part.partition("-")
            try:
                start, end = int(start_text.strip()), int(end_text.strip())
            except ValueError:
                continue
            low, high = min(start, end), max(start, end)
            pages.update(range(low, high + 1))
        else:
            try:
                pages.add(int(part))
            except ValueError:
                continue

    return sorted(pages)


def extract_pages(file: SourceFile, page_numbers: List[int]) -> SourceFile:
    """
    Cria um PDF somente com as paginas pedidas (numeracao a partir de 1).

    Uma pagina gera <base>_Pg<n>.pdf; varias geram <base>_Recorte.pdf.
    """
    try:
        with _open(file) as doc:
            if doc.needs_pass:
                raise PdfProcessingError("Não foi possível ler o arquivo PDF.")

            total = doc.page_count
            indices = [p - 1 for p in page_numbers if 1 <= p <= total]
            if not indices:
                raise PdfProcessingError("Nenhuma página válida selecionada.")

            with fitz.open() as out:
                for index in indices:
                    out.insert_pdf(doc, from_page=index, to_page=index)
                data = out.tobytes(garbage=1)
    except PdfProcessingError:
        raise
    except Exception as e:
        logger.error(f"Error extracting pages from {file.name}: {e}")
        raise PdfProcessingError("Falha ao recortar o PDF.") from e

    suffix = f"Pg{indices[0] + 1}" if len(indices) == 1 else "Recorte"
    return SourceFile(
        name=f"{file.stem}_{suffix}.pdf",
        data=data,
        mime_type=PDF_MIME
    )


def cut_pdf(file: SourceFile, range_text: str) -> SourceFile:
    """Valida o intervalo contra o total de paginas e recorta."""
    pages = parse_page_range(range_text)
    if not pages:
        raise PdfProcessingError("Nenhuma página válida inserida.")

    total = page_count(file)
    if any(p < 1 or p > total for p in pages):
        raise PdfProcessingError(f"Algumas páginas estão fora do limite (1-{total}).")

    return extract_pages(file, pages)


def render_first_page(file: SourceFile, zoom: float = config.QR_RENDER_ZOOM) -> SourceFile:
    """
    Renderiza a primeira pagina como JPEG de alta resolucao.

    Raises:
        PdfProcessingError: PDF vazio, protegido ou ilegivel
    """
    try:
        with _open(file) as doc:
            if doc.needs_pass or doc.page_count == 0:
                raise ValueError("PDF sem paginas legiveis")
            pix = doc[0].get_pixmap(matrix=fitz.Matrix(zoom, zoom), alpha=False)
            image = Image.frombytes("RGB", (pix.width, pix.height), pix.samples)
    except Exception as e:
        logger.error(f"Erro ao converter PDF para imagem: {e}")
        raise PdfProcessingError("Não foi possível renderizar o PDF como imagem.") from e

    buffer = io.BytesIO()
    image.save(buffer, format="JPEG", quality=95)
    name = f"{file.stem}.jpg"
    return SourceFile(name=name, data=buffer.getvalue(), mime_type="image/jpeg")
