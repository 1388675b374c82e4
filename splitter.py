"""
Recursos Suop - Separador de PDF
================================
Separa um PDF de varias paginas em um arquivo por pagina e renomeia cada
pagina pela data de vencimento lida pela IA.

Nome final: <ddmmYYYY>_Boleto_Pag<N>.pdf
Sem data:   SEM_DATA_Boleto_Pag<N>.pdf

A analise das paginas usa o mesmo motor de fila do renomeador (ritmo entre
chamadas, pausa por cota, cancelamento).
"""

import asyncio
import logging
from pathlib import Path
from typing import List, Optional, Union

import config
import pdf_service
import renamer
from batch_queue import BatchQueueEngine, EventCallback
from extractors import GeminiDocumentExtractor
from models import AnalysisStatus, DownloadArtifact, ItemStore, SourceFile, WorkItem
from session import DirectorySink, DownloadSink, deliver_staggered

logger = logging.getLogger('suop.splitter')


class SplitterSession:
    """
    Usage:
        splitter = SplitterSession()
        await splitter.load(SourceFile.from_path("boletos.pdf"))
        for item in splitter.items:
            print(splitter.final_name(item))
    """

    def __init__(
        self,
        extractor: Optional[GeminiDocumentExtractor] = None,
        pacing_delay: float = config.PACING_DELAY_SECONDS,
        cooldown_seconds: float = config.COOLDOWN_SECONDS,
        auto_resume: bool = config.COOLDOWN_AUTO_RESUME,
        download_stagger: float = config.DOWNLOAD_STAGGER_SECONDS,
        on_event: Optional[EventCallback] = None
    ):
        self.extractor = extractor or GeminiDocumentExtractor()
        self.download_stagger = download_stagger
        self.original_file: Optional[SourceFile] = None
        self.store = ItemStore()
        self.engine = BatchQueueEngine(
            self.store,
            processor=self._analyze_page,
            pacing_delay=pacing_delay,
            cooldown_seconds=cooldown_seconds,
            auto_resume=auto_resume,
            on_event=on_event,
        )

    async def _analyze_page(self, item: WorkItem):
        return await self.extractor.extract(item.source_file, config.SPLITTER_CATEGORY)

    @property
    def items(self) -> List[WorkItem]:
        return self.store.items()

    async def load(self, file: SourceFile) -> List[WorkItem]:
        """
        Split `file` and analyse every page.

        Raises:
            ValueError: file is not a PDF
            PdfProcessingError: PDF is corrupt or password protected
        """
        if not file.is_pdf:
            raise ValueError(config.MSG_PDF_ONLY)

        self.reset()
        self.original_file = file

        pages = await asyncio.to_thread(pdf_service.split_pages, file)
        items = [
            WorkItem.from_file(page, config.SPLITTER_CATEGORY, page_index=index)
            for index, page in enumerate(pages, start=1)
        ]
        self.store.add(items)
        logger.info(f"{file.name}: {len(items)} page(s) queued for analysis")

        await self.engine.run_queue()
        return items

    def final_name(self, item: WorkItem) -> str:
        """Date-based name once analysed, the page file name before that."""
        if item.status is not AnalysisStatus.COMPLETE:
            return item.original_name
        return renamer.split_page_name(item.extracted, item.page_index or 0)

    def download(self, item_id: str) -> Optional[DownloadArtifact]:
        item = self.store.get(item_id)
        if item is None:
            return None
        return DownloadArtifact(
            filename=self.final_name(item),
            data=item.source_file.data,
            mime_type=item.source_file.mime_type,
        )

    async def download_all(self, sink: DownloadSink) -> int:
        """Every page, analysed or not, staggered."""
        artifacts = [self.download(item.id) for item in self.store.items()]
        return await deliver_staggered(artifacts, sink, self.download_stagger)

    async def save_all(self, directory: Union[str, Path] = config.OUTPUT_DIR) -> List[Path]:
        sink = DirectorySink(directory)
        await self.download_all(sink)
        return sink.saved

    def reset(self) -> None:
        """Drop the current PDF and stop any analysis in progress."""
        self.engine.cancel_all()
        self.engine.dismiss_notification()
        self.store.clear()
        self.original_file = None
