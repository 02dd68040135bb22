"""矩阵结果报告 - Strategy 模式

每种输出格式实现 ResultFormatter，通过注册制工厂获取。
text 格式即 test 命令结束时打印的汇总表。
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from xml.sax.saxutils import quoteattr as xml_quoteattr

from kitchenmatrix.core.exceptions import ValidationError
from kitchenmatrix.core.models import OutcomeKind
from kitchenmatrix.core.results import ResultsTable
from kitchenmatrix.utils.fileio import atomic_write

logger = logging.getLogger(__name__)


class ResultFormatter(ABC):
    """报告格式化策略基类"""

    @abstractmethod
    def format(self, table: ResultsTable) -> str:
        """将结果表格式化为字符串"""

    @abstractmethod
    def extension(self) -> str:
        """输出文件扩展名（不含 .）"""


class TextFormatter(ResultFormatter):
    def format(self, table: ResultsTable) -> str:
        lines = ["Kitchen Test Results:"]
        for platform, outcomes in table.items():
            lines.append(f"  Platform: {platform}")
            for o in outcomes:
                if o.success:
                    mark = "SUCCESS!"
                elif o.kind == OutcomeKind.SCRUBBED:
                    mark = "FAILED! (scrubbed)"
                elif o.kind == OutcomeKind.PROVISION_FAILED:
                    mark = "FAILED! (provision)"
                else:
                    mark = "FAILED!"
                lines.append(f"    Suite: {o.suite} -> {mark}")
        return "\n".join(lines)

    def extension(self) -> str:
        return "txt"


class JSONFormatter(ResultFormatter):
    def format(self, table: ResultsTable) -> str:
        return json.dumps(
            {"summary": table.summary(), "platforms": table.to_dict()},
            indent=2, ensure_ascii=False,
        )

    def extension(self) -> str:
        return "json"


class JUnitFormatter(ResultFormatter):
    """每个平台一个 testsuite，每个套件一个 testcase"""

    def format(self, table: ResultsTable) -> str:
        suites = ""
        for platform, outcomes in table.items():
            failures = sum(1 for o in outcomes if not o.success)
            cases = ""
            for o in outcomes:
                name_attr = xml_quoteattr(o.suite)
                if o.success:
                    cases += f"    <testcase name={name_attr}/>\n"
                    continue
                msg_attr = xml_quoteattr(o.detail or o.kind_name)
                cases += (
                    f"    <testcase name={name_attr}>\n"
                    f"      <failure message={msg_attr}/>\n"
                    f"    </testcase>\n"
                )
            suites += (
                f"  <testsuite name={xml_quoteattr(platform)} "
                f'tests="{len(outcomes)}" failures="{failures}">\n'
                f"{cases}"
                "  </testsuite>\n"
            )
        summary = table.summary()
        return (
            '<?xml version="1.0" encoding="UTF-8"?>\n'
            f'<testsuites name="kitchenmatrix" tests="{summary["total"]}" '
            f'failures="{summary["failed"]}">\n'
            f"{suites}"
            "</testsuites>\n"
        )

    def extension(self) -> str:
        return "xml"


# =========================================================================
# 注册制工厂
# =========================================================================

_formatters: dict[str, type[ResultFormatter]] = {
    "text": TextFormatter,
    "json": JSONFormatter,
    "junit": JUnitFormatter,
}


def register_formatter(name: str, cls: type[ResultFormatter]) -> None:
    """注册自定义报告格式"""
    _formatters[name] = cls


def available_formats() -> list[str]:
    return list(_formatters)


def render(table: ResultsTable, fmt: str = "text") -> str:
    formatter_cls = _formatters.get(fmt)
    if formatter_cls is None:
        raise ValidationError(f"不支持的格式: {fmt}（可用: {available_formats()}）")
    return formatter_cls().format(table)


def write_report(table: ResultsTable, path: str | Path, fmt: str = "text") -> str:
    """渲染并写入报告文件，返回文件路径"""
    output = Path(path)
    atomic_write(output, render(table, fmt))
    logger.info("报告已生成: %s", output)
    return str(output)
