"""矩阵编排器

test 命令的顶层入口:

  1. 校验平台（默认全部平台），未知平台直接报错，不做任何装配
  2. 指定集群时交给 ClusterSession；否则 vendoring 后展开 平台 × 套件 单元
  3. 由 CellScheduler 顺序或并行执行，各单元结果按派发顺序归并进结果表
  4. 先输出汇总，有失败时再抛 KitchenTestFailed

teardown / status 复用同一组协作者，不做测试。
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from kitchenmatrix.core.exceptions import KitchenTestFailed
from kitchenmatrix.core.models import Cell, CellRun, MatrixOptions, instance_name_for
from kitchenmatrix.core.reporter import render
from kitchenmatrix.core.results import ResultsTable
from kitchenmatrix.core.scheduler import CellScheduler
from kitchenmatrix.services.cluster import ClusterSession
from kitchenmatrix.services.container import ServiceContainer

logger = logging.getLogger(__name__)

ReportCallback = Callable[[ResultsTable], None]


def _log_report(table: ResultsTable) -> None:
    logger.info("\n%s", render(table, "text"))


class MatrixOrchestrator:
    """在平台 × 套件矩阵上执行测试"""

    def __init__(
        self,
        container: ServiceContainer,
        *,
        on_report: ReportCallback | None = None,
    ) -> None:
        self.c = container
        self.on_report = on_report or _log_report

    # ---- 单元展开 ----

    def _platforms(self, requested: list[str] | None) -> list[str]:
        catalog = self.c.catalog
        names = list(requested) if requested else catalog.platform_names()
        for name in names:
            catalog.lookup(name)
        return names

    def expand_cells(self, platforms: list[str], suites: list[str]) -> list[Cell]:
        """平台为主序、套件为次序展开单元"""
        subject = self.c.require_subject().name
        return [
            Cell(platform, suite, instance_name_for(subject, platform, suite))
            for platform in platforms
            for suite in suites
        ]

    # ---- test ----

    def run(self, options: MatrixOptions) -> ResultsTable:
        """执行矩阵测试，有任何单元失败时在输出汇总后抛 KitchenTestFailed"""
        platforms = self._platforms(options.platforms)
        table = ResultsTable(platforms)

        if options.cluster:
            self._run_cluster(options, platforms, table)
        else:
            self._run_isolated(options, platforms, table)

        self.on_report(table)
        if not table.success:
            raise KitchenTestFailed(table.failures())
        return table

    def _run_cluster(self, options: MatrixOptions, platforms: list[str], table: ResultsTable) -> None:
        suites = self.c.catalog.cluster(options.cluster)
        session = ClusterSession(
            self.c.lifecycle(teardown=options.teardown, cluster=True),
            self.c.server(),
            self.c.vendorer(),
            subject=self.c.require_subject().name,
        )
        session.run(options.cluster, suites, platforms, table, parallel=options.parallel)

    def _run_isolated(self, options: MatrixOptions, platforms: list[str], table: ResultsTable) -> None:
        self.c.vendorer().prepare()
        suites = list(options.suites) if options.suites else self.c.catalog.suite_names()
        cells = self.expand_cells(platforms, suites)
        lifecycle = self.c.lifecycle(teardown=options.teardown)
        logger.info(
            "隔离模式: %d 平台 x %d 套件 = %d 单元 (%s)",
            len(platforms), len(suites), len(cells),
            "parallel" if options.parallel else "sequential",
        )

        tasks: list[Callable[[], CellRun]] = [
            (lambda cell=cell: lifecycle.execute(cell)) for cell in cells
        ]
        runs = CellScheduler(parallel=options.parallel).run_all(tasks)
        for run in runs:
            if run.outcome is not None:
                table.record(run.outcome)

    # ---- teardown / status ----

    def teardown(self, platforms: list[str] | None = None, suite: str | None = None) -> list[str]:
        """销毁匹配的实例，不做测试；返回实际销毁的实例名"""
        names = self._platforms(platforms)
        catalog = self.c.catalog
        if suite:
            suites = [suite]
        else:
            suites = list(catalog.suite_names())
            for members in catalog.clusters.values():
                suites.extend(s for s in members if s not in suites)

        destroyed: list[str] = []
        for cell in self.expand_cells(names, suites):
            if self.c.controller.destroy(cell.instance_name):
                destroyed.append(cell.instance_name)
        logger.info("teardown 完成: 销毁 %d 个实例", len(destroyed))
        return destroyed

    def status(self) -> list[dict[str, Any]]:
        return self.c.controller.status()
