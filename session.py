"""
Renamer Session
===============
Operations exposed to the presentation layer for the AI renamer:
add files, change the document type, edit, delete, clear, retry,
unlock and download.

Each operation is a thin wrapper around the item store, the batch queue
engine and the filename projection.
"""

import asyncio
import logging
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Union

import config
import pdf_service
import renamer
from batch_queue import BatchQueueEngine, EventCallback
from extractors import GeminiDocumentExtractor
from models import (
    AnalysisStatus,
    DownloadArtifact,
    ExtractedData,
    ItemStore,
    ProcessingStats,
    RunState,
    SourceFile,
    WorkItem,
)

logger = logging.getLogger('suop.session')

DownloadSink = Callable[[DownloadArtifact], None]


async def unlock_source_file(file: SourceFile, password: str) -> SourceFile:
    """Unlock collaborator: PyMuPDF work runs on a worker thread."""
    return await asyncio.to_thread(pdf_service.unlock_pdf, file, password)


async def deliver_staggered(
    artifacts: Iterable[Optional[DownloadArtifact]],
    sink: DownloadSink,
    stagger: float = config.DOWNLOAD_STAGGER_SECONDS
) -> int:
    """
    Deliver artifacts one by one with a pause between them
    (browsers block many simultaneous downloads).
    """
    delivered = 0
    for artifact in artifacts:
        if artifact is None:
            continue
        if delivered > 0:
            await asyncio.sleep(stagger)
        sink(artifact)
        delivered += 1
    return delivered


class DirectorySink:
    """Download sink that writes into a folder without overwriting."""

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)
        self.saved: List[Path] = []

    def __call__(self, artifact: DownloadArtifact) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        target = renamer.unique_path(self.directory, artifact.filename)
        target.write_bytes(artifact.data)
        self.saved.append(target)
        logger.info(f"Saved {target.name}")


class RenamerSession:
    """
    One batch of files being renamed.

    Usage:
        session = RenamerSession(category="boleto")
        await session.add_files([SourceFile.from_path("boleto.pdf")])
        for item in session.items:
            print(session.suggested_name(item))
    """

    def __init__(
        self,
        extractor: Optional[GeminiDocumentExtractor] = None,
        category: str = config.DEFAULT_CATEGORY,
        pacing_delay: float = config.PACING_DELAY_SECONDS,
        cooldown_seconds: float = config.COOLDOWN_SECONDS,
        auto_resume: bool = config.COOLDOWN_AUTO_RESUME,
        download_stagger: float = config.DOWNLOAD_STAGGER_SECONDS,
        on_event: Optional[EventCallback] = None
    ):
        self.extractor = extractor or GeminiDocumentExtractor()
        self.category = category
        self.download_stagger = download_stagger
        self.store = ItemStore()
        self.engine = BatchQueueEngine(
            self.store,
            processor=self._extract,
            unlocker=unlock_source_file,
            pacing_delay=pacing_delay,
            cooldown_seconds=cooldown_seconds,
            auto_resume=auto_resume,
            on_event=on_event,
        )

    async def _extract(self, item: WorkItem) -> ExtractedData:
        data = await self.extractor.extract(item.source_file, item.category)
        if isinstance(data, ExtractedData):
            return data
        return ExtractedData.from_mapping(data)

    # ==========================================================================
    # STATE
    # ==========================================================================

    @property
    def items(self) -> List[WorkItem]:
        return self.store.items()

    def get(self, item_id: str) -> Optional[WorkItem]:
        return self.store.get(item_id)

    @property
    def run_state(self) -> RunState:
        return self.engine.state

    @property
    def is_locked(self) -> bool:
        return self.engine.is_locked

    @property
    def ready_notification(self) -> bool:
        return self.engine.ready_notification

    def stats(self) -> ProcessingStats:
        return self.store.stats()

    # ==========================================================================
    # OPERATIONS
    # ==========================================================================

    async def add_files(
        self,
        files: Iterable[SourceFile],
        category: Optional[str] = None
    ) -> List[WorkItem]:
        """
        Create IDLE items for the files and start processing.

        During a cooldown the items are queued and wait for the next run.
        """
        self.engine.dismiss_notification()
        new_items = [
            WorkItem.from_file(file, category or self.category)
            for file in files
        ]
        if not new_items:
            return []

        self.store.add(new_items)
        logger.info(f"Added {len(new_items)} file(s) as {category or self.category}")

        await self.engine.run_queue()
        return new_items

    def change_category(self, category: str) -> None:
        """Set the active document type and apply it to every item."""
        self.category = category
        self.store.set_category(category)

    def update_item(self, item_id: str, **fields) -> Optional[WorkItem]:
        """Manual correction (category, extracted data, editing flag)."""
        return self.store.update_fields(item_id, **fields)

    def delete_item(self, item_id: str) -> bool:
        return self.store.remove(item_id) is not None

    def clear_all(self, confirm: bool = False) -> bool:
        """
        Stop all processing and empty the batch.

        Returns:
            False if not confirmed or nothing to clear
        """
        if not confirm or len(self.store) == 0:
            return False

        self.engine.cancel_all()
        self.store.clear()
        logger.info("Batch cleared")
        return True

    async def retry(self) -> None:
        await self.engine.retry_queue()

    async def unlock(self, item_id: str, password: str) -> bool:
        return await self.engine.unlock(item_id, password)

    # ==========================================================================
    # DOWNLOAD
    # ==========================================================================

    def suggested_name(self, item: WorkItem) -> str:
        return renamer.build_filename(item.extracted, item.category, item.original_name)

    def download(self, item_id: str) -> Optional[DownloadArtifact]:
        """Renamed copy of a COMPLETE item, or None."""
        item = self.store.get(item_id)
        if item is None or item.status is not AnalysisStatus.COMPLETE:
            return None

        return DownloadArtifact(
            filename=self.suggested_name(item),
            data=item.source_file.data,
            mime_type=item.source_file.mime_type,
        )

    async def download_all(self, sink: DownloadSink) -> int:
        """
        Hand every COMPLETE item to `sink`, one at a time with a short pause.

        Returns:
            Number of files delivered
        """
        artifacts = [
            self.download(item.id)
            for item in self.store.with_status(AnalysisStatus.COMPLETE)
        ]
        return await deliver_staggered(artifacts, sink, self.download_stagger)

    async def save_all(self, directory: Union[str, Path] = config.OUTPUT_DIR) -> List[Path]:
        """Write every COMPLETE item to `directory` under its new name."""
        sink = DirectorySink(directory)
        await self.download_all(sink)
        return sink.saved
