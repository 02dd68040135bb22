"""日志配置测试"""

from __future__ import annotations

import json
import logging

from kitchenmatrix.core.models import Cell
from kitchenmatrix.utils.logger import CellLogAdapter, JSONFormatter, reset_logging, setup_logging


class TestCellLogAdapter:
    def test_prefix_and_cell_field(self, caplog):
        log = CellLogAdapter(logging.getLogger("kitchenmatrix.test"), Cell("ubuntu-12.04", "default", "x"))
        with caplog.at_level(logging.INFO):
            log.info("开始装配")
        record = caplog.records[-1]
        assert record.getMessage() == "[ubuntu-12.04/default] 开始装配"
        assert record.cell == "ubuntu-12.04/default"


class TestJSONFormatter:
    def test_fields(self):
        record = logging.LogRecord("kitchenmatrix.x", logging.WARNING, __file__, 1, "hello %s", ("w",), None)
        record.cell = "p/s"
        entry = json.loads(JSONFormatter().format(record))
        assert entry["level"] == "WARNING"
        assert entry["message"] == "hello w"
        assert entry["cell"] == "p/s"

    def test_exception(self):
        try:
            raise ValueError("bad")
        except ValueError:
            import sys
            record = logging.LogRecord("x", logging.ERROR, __file__, 1, "oops", (), sys.exc_info())
        entry = json.loads(JSONFormatter().format(record))
        assert "ValueError: bad" in entry["exception"]
        assert "cell" not in entry


class TestSetupLogging:
    def test_no_duplicate_handlers(self):
        root = logging.getLogger()
        saved = root.handlers[:]
        try:
            setup_logging("DEBUG")
            setup_logging("DEBUG", json_output=True)
            assert len(root.handlers) == 1
            assert isinstance(root.handlers[0].formatter, JSONFormatter)
            assert root.level == logging.DEBUG
        finally:
            reset_logging()
            for h in saved:
                root.addHandler(h)
