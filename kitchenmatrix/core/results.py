"""矩阵结果表

平台名 → 该平台下各套件结果（有序）。创建时即固定平台键集合，
并行模式下多个线程可能同时写入，所有读写经由同一把锁。
"""

from __future__ import annotations

import threading
from typing import Any, Iterable, Iterator

from kitchenmatrix.core.models import CellOutcome


class ResultsTable:
    """线程安全的平台 → 结果列表映射"""

    def __init__(self, platforms: Iterable[str]) -> None:
        self._lock = threading.Lock()
        self._table: dict[str, list[CellOutcome]] = {p: [] for p in platforms}

    def record(self, outcome: CellOutcome) -> None:
        """追加一条结果，平台必须是创建时声明过的"""
        with self._lock:
            if outcome.platform not in self._table:
                raise KeyError(f"结果表中没有平台: {outcome.platform}")
            self._table[outcome.platform].append(outcome)

    def extend(self, outcomes: Iterable[CellOutcome]) -> None:
        for outcome in outcomes:
            self.record(outcome)

    def platforms(self) -> list[str]:
        with self._lock:
            return list(self._table)

    def outcomes(self, platform: str) -> list[CellOutcome]:
        with self._lock:
            return list(self._table.get(platform, []))

    def items(self) -> Iterator[tuple[str, list[CellOutcome]]]:
        with self._lock:
            snapshot = [(p, list(o)) for p, o in self._table.items()]
        return iter(snapshot)

    def failures(self) -> list[tuple[str, str]]:
        """失败的 (platform, suite) 对，按记录顺序"""
        return [
            (platform, o.suite)
            for platform, outcomes in self.items()
            for o in outcomes
            if not o.success
        ]

    def failed_suites(self) -> list[str]:
        return sorted(suite for _, suite in self.failures())

    @property
    def success(self) -> bool:
        return not self.failures()

    def summary(self) -> dict[str, int]:
        all_outcomes = [o for _, outcomes in self.items() for o in outcomes]
        passed = sum(1 for o in all_outcomes if o.success)
        return {
            "total": len(all_outcomes),
            "passed": passed,
            "failed": len(all_outcomes) - passed,
        }

    def to_dict(self) -> dict[str, list[dict[str, Any]]]:
        return {p: [o.to_dict() for o in outcomes] for p, outcomes in self.items()}
