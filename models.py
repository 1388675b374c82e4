"""
Recursos Suop - Item Model
==========================
Unidade de trabalho do lote e sua maquina de estados.

Este modulo define:
- Estados de analise de cada arquivo (AnalysisStatus)
- Estado do lote (RunState: ocioso, processando, resfriando)
- Dados extraidos pela IA (ExtractedData) e codigos de pagamento
- O conjunto mutavel de itens (ItemStore), unico dono das transicoes

Invariante: um item possui dados extraidos se, e somente se, estiver COMPLETE.
"""

import mimetypes
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional, Union


# ==============================================================================
# ENUMS
# ==============================================================================

class AnalysisStatus(Enum):
    """Estados de um item do lote."""
    IDLE = "IDLE"                          # Aguardando processamento
    PROCESSING = "PROCESSING"              # Em analise pela IA
    COMPLETE = "COMPLETE"                  # Dados extraidos
    ERROR = "ERROR"                        # Falha definitiva nesta tentativa
    WAITING_PASSWORD = "WAITING_PASSWORD"  # PDF protegido por senha


class RunState(Enum):
    """Estado do lote como um todo."""
    IDLE = "IDLE"
    RUNNING = "RUNNING"
    COOLDOWN = "COOLDOWN"  # Pausado apos limite de cota da API


# Valores padrao quando a IA devolve campos vazios
DEFAULT_PAYEE = "DESCONHECIDO"
DEFAULT_AMOUNT = "0,00"
DEFAULT_EXPLANATION = "Extraído automaticamente."


def today_ddmmyyyy() -> str:
    """Data atual no formato usado nos nomes (ddmmYYYY)."""
    return datetime.now().strftime("%d%m%Y")


# ==============================================================================
# DATA CLASSES
# ==============================================================================

@dataclass(frozen=True)
class SourceFile:
    """Arquivo enviado pelo usuario: conteudo binario + tipo declarado."""
    name: str
    data: bytes
    mime_type: str = "application/octet-stream"

    @property
    def is_pdf(self) -> bool:
        return self.mime_type == "application/pdf"

    @property
    def stem(self) -> str:
        if "." not in self.name:
            return self.name
        return self.name.rsplit(".", 1)[0]

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> "SourceFile":
        """Le um arquivo do disco adivinhando o tipo pela extensao."""
        path = Path(path)
        mime_type, _ = mimetypes.guess_type(path.name)
        return cls(
            name=path.name,
            data=path.read_bytes(),
            mime_type=mime_type or "application/octet-stream"
        )


@dataclass
class ExtractedData:
    """Campos estruturados devolvidos pelo extrator."""
    date: str            # ddmmYYYY
    payee: str           # Nome normalizado
    amount: str          # 1.234,56
    original_amount: str
    document_number: Optional[str] = None
    explanation: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "ExtractedData":
        """
        Constroi o resultado aplicando os valores padrao defensivos.

        Aceita as chaves internas (payee/amount) e as chaves do schema
        enviado ao Gemini (beneficiary/value).
        """
        data = data or {}
        payee = data.get("payee") or data.get("beneficiary")
        amount = data.get("amount") or data.get("value")
        document_number = data.get("document_number") or data.get("documentNumber")

        return cls(
            date=str(data.get("date") or today_ddmmyyyy()),
            payee=str(payee or DEFAULT_PAYEE),
            amount=str(amount or DEFAULT_AMOUNT),
            original_amount=str(data.get("original_amount") or amount or DEFAULT_AMOUNT),
            document_number=str(document_number) if document_number else None,
            explanation=data.get("explanation") or DEFAULT_EXPLANATION,
        )


@dataclass
class PaymentCodes:
    """Linha digitavel e/ou payload Pix lidos de um boleto."""
    bar_line: Optional[str] = None
    pix_payload: Optional[str] = None

    @property
    def found(self) -> bool:
        return bool(self.bar_line or self.pix_payload)


@dataclass
class WorkItem:
    """Um arquivo do lote."""
    source_file: SourceFile
    original_name: str
    category: str
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    status: AnalysisStatus = AnalysisStatus.IDLE
    extracted: Optional[Any] = None
    error_message: Optional[str] = None
    is_editing: bool = False
    page_index: Optional[int] = None  # Paginas geradas pelo separador

    @classmethod
    def from_file(
        cls,
        source_file: SourceFile,
        category: str,
        page_index: Optional[int] = None
    ) -> "WorkItem":
        return cls(
            source_file=source_file,
            original_name=source_file.name,
            category=category,
            page_index=page_index
        )


@dataclass
class ProcessingStats:
    """Contadores exibidos no cabecalho (Processados X / Y)."""
    total: int = 0
    processed: int = 0
    success: int = 0
    idle: int = 0
    errors: int = 0
    waiting_password: int = 0


@dataclass(frozen=True)
class DownloadArtifact:
    """Copia renomeada pronta para o usuario salvar."""
    filename: str
    data: bytes
    mime_type: str


# ==============================================================================
# CONJUNTO DE ITENS
# ==============================================================================

# Campos que a camada de apresentacao pode editar diretamente
EDITABLE_FIELDS = {"category", "extracted", "is_editing"}


class ItemStore:
    """
    Conjunto ordenado e mutavel dos itens de um lote.

    Todas as operacoes sobre um id inexistente sao no-op e retornam None:
    um resultado tardio para um item apagado nunca o recria.
    """

    def __init__(self):
        self._items: "OrderedDict[str, WorkItem]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, item_id: str) -> bool:
        return item_id in self._items

    def __iter__(self) -> Iterator[WorkItem]:
        return iter(list(self._items.values()))

    def items(self) -> List[WorkItem]:
        return list(self._items.values())

    def get(self, item_id: str) -> Optional[WorkItem]:
        return self._items.get(item_id)

    def add(self, items: List[WorkItem]) -> List[WorkItem]:
        for item in items:
            if item.id in self._items:
                raise ValueError(f"Duplicate item id: {item.id}")
            self._items[item.id] = item
        return items

    def remove(self, item_id: str) -> Optional[WorkItem]:
        return self._items.pop(item_id, None)

    def clear(self) -> None:
        self._items.clear()

    def idle_ids(self) -> List[str]:
        """Ids em IDLE, na ordem em que foram adicionados."""
        return [
            item.id for item in self._items.values()
            if item.status is AnalysisStatus.IDLE
        ]

    def with_status(self, status: AnalysisStatus) -> List[WorkItem]:
        return [item for item in self._items.values() if item.status is status]

    # --------------------------------------------------------------------------
    # Transicoes
    # --------------------------------------------------------------------------

    def transition(
        self,
        item_id: str,
        status: AnalysisStatus,
        extracted: Any = None,
        error_message: Optional[str] = None
    ) -> Optional[WorkItem]:
        """
        Move o item para `status` mantendo a invariante dos dados extraidos.
        """
        item = self._items.get(item_id)
        if item is None:
            return None

        if status is AnalysisStatus.COMPLETE:
            if extracted is None:
                raise ValueError("COMPLETE requires extracted data")
            item.extracted = extracted
            item.error_message = None
        else:
            item.extracted = None
            item.error_message = error_message if status is AnalysisStatus.ERROR else None

        item.status = status
        return item

    def replace_file(self, item_id: str, source_file: SourceFile) -> Optional[WorkItem]:
        """Troca o arquivo (PDF desbloqueado) e devolve o item para a fila."""
        item = self._items.get(item_id)
        if item is None:
            return None
        item.source_file = source_file
        return self.transition(item_id, AnalysisStatus.IDLE)

    def set_error_message(self, item_id: str, message: Optional[str]) -> Optional[WorkItem]:
        """Altera apenas a mensagem, sem mudar o estado."""
        item = self._items.get(item_id)
        if item is None:
            return None
        item.error_message = message
        return item

    def update_fields(self, item_id: str, **fields) -> Optional[WorkItem]:
        """Edicao manual (correcao antes do download)."""
        unknown = set(fields) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Campos nao editaveis: {', '.join(sorted(unknown))}")

        item = self._items.get(item_id)
        if item is None:
            return None

        if "extracted" in fields:
            extracted = fields["extracted"]
            if item.status is not AnalysisStatus.COMPLETE or extracted is None:
                raise ValueError("Dados extraidos so podem ser editados em itens COMPLETE")
            if isinstance(extracted, dict):
                extracted = replace(item.extracted, **extracted)
            fields["extracted"] = extracted

        for name, value in fields.items():
            setattr(item, name, value)
        return item

    def set_category(self, category: str) -> None:
        for item in self._items.values():
            item.category = category

    def stats(self) -> ProcessingStats:
        counts: Dict[AnalysisStatus, int] = {status: 0 for status in AnalysisStatus}
        for item in self._items.values():
            counts[item.status] += 1

        complete = counts[AnalysisStatus.COMPLETE]
        errors = counts[AnalysisStatus.ERROR]
        return ProcessingStats(
            total=len(self._items),
            processed=complete + errors,
            success=complete,
            idle=counts[AnalysisStatus.IDLE],
            errors=errors,
            waiting_password=counts[AnalysisStatus.WAITING_PASSWORD],
        )
