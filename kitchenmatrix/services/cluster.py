"""集群模式会话

同一平台上的一组套件共享一个收敛服务器，按 先全部装配、再全部测试 执行:

  1. 启动（或复用外部）收敛服务器
  2. vendoring 并上传 cookbook，整个会话只做一次
  3. 逐个平台: 按集群顺序装配每个套件；任一套件装配失败即停止该平台，
     失败套件记 provision_failed，其余套件（已装配未测试的和未尝试的）记 scrubbed；
     全部装配成功后再逐个测试
  4. 每个平台结束时销毁尝试过装配的实例，所有平台结束后销毁服务器

集群模式总是顺序执行。
"""

from __future__ import annotations

import logging

from kitchenmatrix.core.models import Cell, CellOutcome, CellRun, instance_name_for
from kitchenmatrix.core.results import ResultsTable
from kitchenmatrix.services.lifecycle import CellLifecycle
from kitchenmatrix.services.server import ConvergenceServer
from kitchenmatrix.services.vendor import Vendorer

logger = logging.getLogger(__name__)


class ClusterSession:
    """一次集群模式运行"""

    def __init__(
        self,
        lifecycle: CellLifecycle,
        server: ConvergenceServer,
        vendorer: Vendorer,
        *,
        subject: str,
    ) -> None:
        self.lifecycle = lifecycle
        self.server = server
        self.vendorer = vendorer
        self.subject = subject

    def run(
        self,
        cluster: str,
        suites: list[str],
        platforms: list[str],
        table: ResultsTable,
        *,
        parallel: bool = False,
    ) -> ResultsTable:
        if parallel:
            logger.warning("集群模式不支持并行，按顺序执行: %s", cluster)
        logger.info("集群 %s: 平台=%s, 套件=%s", cluster, platforms, suites)

        try:
            url = self.server.start()
            if self.vendorer.name not in self.server.uploaded:
                self.vendorer.upload(url)
                self.server.mark_uploaded(self.vendorer.name)
            lifecycle = self.lifecycle.with_server(url)
            for platform in platforms:
                self._run_platform(lifecycle, platform, suites, table)
        finally:
            self.server.destroy()
        return table

    def _cells(self, platform: str, suites: list[str]) -> list[Cell]:
        return [
            Cell(platform, suite, instance_name_for(self.subject, platform, suite))
            for suite in suites
        ]

    def _run_platform(
        self,
        lifecycle: CellLifecycle,
        platform: str,
        suites: list[str],
        table: ResultsTable,
    ) -> None:
        cells = self._cells(platform, suites)
        attempted: list[CellRun] = []
        try:
            failed_at = -1
            for index, cell in enumerate(cells):
                run = CellRun(cell=cell)
                attempted.append(run)
                if not lifecycle.provision(run):
                    failed_at = index
                    break

            if failed_at >= 0:
                failed = attempted[failed_at]
                logger.error(
                    "平台 %s 上套件 %s 装配失败，清理本平台其余套件",
                    platform, failed.cell.suite,
                )
                for index, cell in enumerate(cells):
                    if index == failed_at and failed.outcome is not None:
                        table.record(failed.outcome)
                    else:
                        table.record(CellOutcome.scrubbed(cell, f"{failed.cell.suite} 装配失败"))
                return

            for run in attempted:
                table.record(lifecycle.test(run))
        finally:
            for run in attempted:
                lifecycle.destroy(run)
