
import asyncio
import logging
import os
import sys
from unittest.mock import MagicMock

import pytest

# Ensure we can import from parent directory
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import config
from batch_queue import BatchQueueEngine
from exceptions import QuotaExceededError
from logging_config import QueueEventLogger, get_logger, setup_logging
from models import ItemStore, ProcessingStats, SourceFile, WorkItem


@pytest.fixture
def logs_in_tmp(tmp_path, monkeypatch):
    monkeypatch.setattr(config, "LOGS_DIR", tmp_path / "logs")
    yield tmp_path / "logs"
    for name in ('suop', 'suop.gemini', 'suop.queue'):
        for handler in logging.getLogger(name).handlers:
            handler.close()
        logging.getLogger(name).handlers.clear()


def queue_lines(caplog):
    return [r.getMessage() for r in caplog.records if r.name == 'suop.queue']


class TestSetup:

    def test_creates_log_files(self, logs_in_tmp):
        setup_logging(enable_console=False)
        get_logger('queue').info("hello")

        names = sorted(p.name.split("_")[0] for p in logs_in_tmp.iterdir())
        assert names == ["gemini", "queue", "suop"]

    def test_get_logger_prefix(self):
        assert get_logger('cli').name == 'suop.cli'
        assert get_logger('suop.queue').name == 'suop.queue'

    def test_sdk_http_logs_are_quiet(self, logs_in_tmp):
        setup_logging(enable_console=False)
        assert logging.getLogger('httpx').level == logging.WARNING

        setup_logging(log_level=logging.DEBUG, enable_console=False)
        assert logging.getLogger('httpx').level == logging.DEBUG


class TestQueueEventLogger:

    def test_describes_events(self, caplog):
        caplog.set_level(logging.DEBUG, logger='suop.queue')
        events = QueueEventLogger('renomear')

        events("run_started", {"total": 2})
        events("cooldown_started", {"seconds": 60})
        events("run_finished", {"stats": ProcessingStats(total=2, processed=2, success=1, errors=1)})

        assert queue_lines(caplog) == [
            "[renomear] run started: 2 item(s)",
            "[renomear] quota pause for 60s",
            "[renomear] run finished: 1/2 ok, 1 error(s), 0 waiting password",
        ]

    def test_forwards_events(self):
        forward = MagicMock()
        QueueEventLogger('codigos', forward=forward)("ready", {})
        forward.assert_called_once_with("ready", {})

    def test_engine_run_and_cooldown_are_logged(self, caplog):
        caplog.set_level(logging.DEBUG, logger='suop.queue')

        async def processor(item):
            if item.original_name == "b.pdf":
                raise QuotaExceededError("429")
            return "ok"

        async def scenario():
            store = ItemStore()
            for name in ("a.pdf", "b.pdf"):
                store.add([WorkItem.from_file(SourceFile(name, b"%PDF"), "boleto")])
            engine = BatchQueueEngine(
                store, processor, pacing_delay=0, cooldown_seconds=0.02,
                auto_resume=False, on_event=QueueEventLogger('renomear')
            )
            await engine.run_queue()
            await asyncio.sleep(0.05)

        asyncio.run(scenario())

        lines = queue_lines(caplog)
        assert "[renomear] run started: 2 item(s)" in lines
        assert "[renomear] a.pdf -> COMPLETE" in lines
        assert "[renomear] quota pause for 0.02s" in lines
        assert "[renomear] quota pause over" in lines
