"""单个测试单元的生命周期状态机

  pending → provisioning → provisioned → testing → (succeeded | failed)
  provisioning → failed                   （装配失败，显式状态而非异常跳出）
  任意状态 → destroying → destroyed        （除非调用方关闭自动 teardown）

装配失败在本层被吸收为 provision_failed 结果；集群模式由 ClusterSession 据此
决定是否清理整个平台。teardown 尽力而为，失败只记日志，不覆盖已记录的结果。
"""

from __future__ import annotations

import copy
import logging
from pathlib import Path

from kitchenmatrix.core.catalog import PlatformCatalog
from kitchenmatrix.core.exceptions import ExecutionError, HostProvisionFailed
from kitchenmatrix.core.models import Cell, CellOutcome, CellRun, CellState
from kitchenmatrix.core.runlist import RunListResolver
from kitchenmatrix.services.config_writer import CellConfigWriter
from kitchenmatrix.services.harness import TestHarnessRunner
from kitchenmatrix.services.instance.controller import InstanceController
from kitchenmatrix.utils.logger import CellLogAdapter

logger = logging.getLogger(__name__)


class CellLifecycle:
    """驱动单元走完 装配 → 测试 → 销毁

    server_url 非空即集群模式: 只写 dna.json，收敛交给共享服务器。
    """

    def __init__(
        self,
        *,
        catalog: PlatformCatalog,
        resolver: RunListResolver,
        controller: InstanceController,
        harness: TestHarnessRunner,
        writer: CellConfigWriter,
        test_root: str | Path,
        cookbook_path: str | Path = "",
        teardown: bool = True,
        server_url: str = "",
    ) -> None:
        self.catalog = catalog
        self.resolver = resolver
        self.controller = controller
        self.harness = harness
        self.writer = writer
        self.test_root = Path(test_root)
        self.cookbook_path = str(cookbook_path)
        self.teardown = teardown
        self.server_url = server_url

    def with_server(self, server_url: str) -> CellLifecycle:
        """返回绑定共享服务器的副本"""
        bound = copy.copy(self)
        bound.server_url = server_url
        return bound

    @property
    def cluster(self) -> bool:
        return bool(self.server_url)

    # ---- 各阶段 ----

    def provision(self, run: CellRun) -> bool:
        """pending → provisioning → (provisioned | failed)，返回是否装配成功"""
        cell = run.cell
        log = CellLogAdapter(logger, cell)
        run.advance(CellState.PROVISIONING)
        log.info("开始装配 (instance=%s, %s)", cell.instance_name, "cluster" if self.cluster else "solo")
        try:
            platform = self.catalog.lookup(cell.platform)
            resolved = self.resolver.resolve(cell.platform, cell.suite)
            self.controller.create(
                cell.instance_name, platform.template, resolved.run_list,
                platform=cell.platform, suite=cell.suite,
            )
            config_dir = self.writer.write(
                cell.instance_name, cell, resolved,
                cookbook_path=self.cookbook_path, solo=not self.cluster,
            )
            run.config_dir = str(config_dir)
            converged = self.controller.converge(
                cell.instance_name, str(config_dir),
                server_url=self.server_url, cookbook_path=self.cookbook_path,
            )
            if not converged:
                raise HostProvisionFailed(cell.platform, cell.suite, "收敛失败")
        except Exception as e:
            log.error("装配失败: %s", e, exc_info=not isinstance(e, HostProvisionFailed))
            run.advance(CellState.FAILED)
            run.outcome = CellOutcome.provision_failed(cell, str(e))
            return False

        run.advance(CellState.PROVISIONED)
        log.info("装配完成")
        return True

    def test(self, run: CellRun) -> CellOutcome:
        """provisioned → testing → (succeeded | failed)"""
        cell = run.cell
        log = CellLogAdapter(logger, cell)
        if run.state != CellState.PROVISIONED:
            raise ExecutionError(f"单元未装配，无法测试: {cell.platform}[{cell.suite}] ({run.state.value})")

        run.advance(CellState.TESTING)
        log.info("运行测试 (fixtures=%s)", self.test_root)
        detail = ""
        try:
            handle = self.harness.prepare(cell.instance_name, cell.suite, self.test_root)
            passed = self.harness.run(handle, cell.instance_name)
            if not passed:
                detail = "测试命令返回失败"
        except Exception as e:
            log.error("测试执行异常: %s", e, exc_info=True)
            passed = False
            detail = str(e)

        if passed:
            run.advance(CellState.SUCCEEDED)
            run.outcome = CellOutcome.passed(cell)
        else:
            run.advance(CellState.FAILED)
            run.outcome = CellOutcome.test_failed(cell, detail)
        log.info("测试结果: %s", "SUCCESS!" if passed else f"FAILED ({detail})")
        return run.outcome

    def destroy(self, run: CellRun) -> None:
        """→ destroying → destroyed；关闭 teardown 时保留实例"""
        cell = run.cell
        log = CellLogAdapter(logger, cell)
        if not self.teardown:
            if run.state == CellState.FAILED and not run.provisioned:
                run.advance(CellState.FAILED_FATAL)
            log.info("已关闭自动 teardown，保留实例: %s", cell.instance_name)
            return

        run.advance(CellState.DESTROYING)
        try:
            self.controller.destroy(cell.instance_name)
        except Exception as e:
            log.warning("销毁实例失败（忽略）: %s", e, exc_info=True)
            return
        run.advance(CellState.DESTROYED)

    # ---- 隔离模式完整流程 ----

    def execute(self, cell: Cell) -> CellRun:
        """装配、测试，无论结果如何都尝试销毁"""
        run = CellRun(cell=cell)
        try:
            if self.provision(run):
                self.test(run)
        finally:
            self.destroy(run)
        return run
