"""
Unit tests for logging configuration.

Tests:
- Structured file format with the table field
- Table context attached by the engine's log calls
"""

import logging

import pytest

from extsync.sync.catalog import TableCatalog
from extsync.sync.connectors.memory import MemoryStore
from extsync.sync.orchestrator import SyncOrchestrator
from extsync.system.logging_config import StructuredFormatter, setup_logging

FILE_FORMAT = "%(service_name)s - %(table)s - %(message)s"


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in root.handlers:
        handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


class TestStructuredFormatter:
    """Tests for the structured formatter."""

    def test_table_from_extra(self):
        record = logging.LogRecord("extsync.sync.reader", logging.INFO, __file__, 1, "rows loaded", None, None)
        record.table = "assets"

        assert StructuredFormatter(FILE_FORMAT).format(record) == "extsync - assets - rows loaded"

    def test_table_placeholder(self):
        record = logging.LogRecord("extsync.app", logging.INFO, __file__, 1, "started", None, None)

        assert StructuredFormatter(FILE_FORMAT).format(record) == "extsync - - - started"


class TestTableContext:
    """Tests for the table attached to engine log records."""

    @pytest.mark.asyncio
    async def test_sync_records_carry_table(self, caplog):
        catalog = TableCatalog(tables=("parents",))
        source = MemoryStore(tables={"parents": [{"id": 1}, {"id": 2}]})
        orchestrator = SyncOrchestrator(source, MemoryStore(), catalog)

        with caplog.at_level(logging.INFO, logger="extsync"):
            await orchestrator.sync_full()

        tables = {
            getattr(record, "table", None)
            for record in caplog.records
            if record.name in ("extsync.sync.reader", "extsync.sync.writer")
        }
        assert tables == {"parents"}

    def test_file_logs_include_table(self, tmp_path, restore_root_logger):
        setup_logging(log_level="INFO", log_dir=str(tmp_path))

        logging.getLogger("extsync.sync.writer").info("2/2 rows written", extra={"table": "parents"})
        for handler in restore_root_logger.handlers:
            handler.flush()

        content = (tmp_path / "sync.log").read_text()
        assert "extsync - parents - 2/2 rows written" in content
