"""kitchenmatrix 日志配置

提供普通文本和结构化 JSON 两种输出格式，以及按测试单元打前缀的 CellLogAdapter。
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, MutableMapping

from kitchenmatrix.core.models import Cell


class JSONFormatter(logging.Formatter):
    """结构化 JSON 日志格式器，便于 CI 流水线消费

    输出格式:
        {
            "timestamp": "2024-01-01T12:00:00+00:00",
            "level": "INFO",
            "logger": "kitchenmatrix.services.lifecycle",
            "message": "...",
            "cell": "ubuntu-12.04/default",   (仅 CellLogAdapter 输出时)
            "exception": "traceback..."       (仅在有异常时)
        }
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc,
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        cell = getattr(record, "cell", None)
        if cell:
            entry["cell"] = cell
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


class CellLogAdapter(logging.LoggerAdapter):
    """给日志加上 [platform/suite] 前缀，并把单元标识写入 record.cell

    示例:
        >>> log = CellLogAdapter(logger, cell)
        >>> log.info("开始装配")   # -> "[ubuntu-12.04/default] 开始装配"
    """

    def __init__(self, logger: logging.Logger, cell: Cell) -> None:
        super().__init__(logger, {"cell": f"{cell.platform}/{cell.suite}"})

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any],
    ) -> tuple[Any, MutableMapping[str, Any]]:
        extra = dict(kwargs.get("extra") or {})
        extra.setdefault("cell", self.extra["cell"])
        kwargs["extra"] = extra
        return f"[{self.extra['cell']}] {msg}", kwargs


def setup_logging(level: str = "INFO", json_output: bool = False) -> None:
    """配置根日志器（输出到 stderr，重复调用不会叠加 handler）"""
    root = logging.getLogger()
    reset_logging()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    handler = logging.StreamHandler(sys.stderr)
    if json_output:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)-7s] %(name)s: %(message)s"),
        )
    root.addHandler(handler)


def reset_logging() -> None:
    """清理根日志器上所有 handler"""
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()
