"""
Batch Payment-Code Reader
=========================
Reads the boleto bar line and the Pix payload from many PDFs/images.

Accepted types: PDF, JPEG, PNG, WEBP. Files go through the shared batch
queue engine; a file with neither code ends in ERROR.
"""

import logging
from typing import Iterable, List, Optional

import config
from batch_queue import BatchQueueEngine, EventCallback
from exceptions import ExtractionError
from extractors import PaymentCodeReader
from models import AnalysisStatus, ItemStore, PaymentCodes, SourceFile, WorkItem

logger = logging.getLogger('suop.barcode')

CATEGORY = "boleto"


class BarcodeBatch:
    """
    Usage:
        batch = BarcodeBatch()
        await batch.add_files([SourceFile.from_path("boleto.png")])
        for item in batch.results():
            print(item.extracted.bar_line, item.extracted.pix_payload)
    """

    def __init__(
        self,
        reader: Optional[PaymentCodeReader] = None,
        pacing_delay: float = config.PACING_DELAY_SECONDS,
        cooldown_seconds: float = config.COOLDOWN_SECONDS,
        auto_resume: bool = config.COOLDOWN_AUTO_RESUME,
        on_event: Optional[EventCallback] = None
    ):
        self.reader = reader or PaymentCodeReader()
        self.store = ItemStore()
        self.engine = BatchQueueEngine(
            self.store,
            processor=self._read_codes,
            pacing_delay=pacing_delay,
            cooldown_seconds=cooldown_seconds,
            auto_resume=auto_resume,
            on_event=on_event,
        )

    async def _read_codes(self, item: WorkItem) -> PaymentCodes:
        codes = await self.reader.extract_codes(item.source_file)
        if not codes.found:
            raise ExtractionError(config.MSG_NO_CODE_FOUND)
        return codes

    @property
    def items(self) -> List[WorkItem]:
        return self.store.items()

    async def add_files(self, files: Iterable[SourceFile]) -> List[WorkItem]:
        """
        Queue the supported files and process them.

        Raises:
            ValueError: files were given but none has a supported type
        """
        files = list(files)
        accepted = [f for f in files if f.mime_type in config.BARCODE_ACCEPTED_TYPES]

        if files and not accepted:
            raise ValueError(
                "Por favor, cole ou selecione apenas arquivos PDF ou Imagens (JPG/PNG)."
            )

        skipped = len(files) - len(accepted)
        if skipped:
            logger.info(f"Skipped {skipped} unsupported file(s)")

        new_items = [WorkItem.from_file(f, CATEGORY) for f in accepted]
        if not new_items:
            return []

        self.store.add(new_items)
        await self.engine.run_queue()
        return new_items

    def delete_item(self, item_id: str) -> bool:
        return self.store.remove(item_id) is not None

    async def retry(self) -> None:
        await self.engine.retry_queue()

    def results(self) -> List[WorkItem]:
        return self.store.with_status(AnalysisStatus.COMPLETE)

    def clear_all(self) -> None:
        self.engine.cancel_all()
        self.store.clear()
