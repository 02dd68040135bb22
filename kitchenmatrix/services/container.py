"""服务容器 — 统一依赖注入

CLI 通过容器获取编排所需的全部协作者，同一容器内的实例共享状态
（实例映射表、按实例名的锁等）。测试可注入假运行时和假命令执行器。

依赖关系:
  controller → runtime, mappings
  harness    → controller
  resolver   → catalog
  lifecycle  → catalog, resolver, controller, harness, writer
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from kitchenmatrix.core.catalog import PlatformCatalog
    from kitchenmatrix.core.config import Config
    from kitchenmatrix.core.runlist import RunListResolver
    from kitchenmatrix.core.subject import Subject
    from kitchenmatrix.services.config_writer import CellConfigWriter
    from kitchenmatrix.services.harness import TestHarnessRunner
    from kitchenmatrix.services.instance import (
        InstanceController,
        InstanceMappings,
        InstanceRuntime,
    )
    from kitchenmatrix.services.lifecycle import CellLifecycle
    from kitchenmatrix.services.server import ConvergenceServer
    from kitchenmatrix.services.vendor import Vendorer
    from kitchenmatrix.utils.shell import CommandExecutor

logger = logging.getLogger(__name__)


class ServiceContainer:
    """懒加载服务容器"""

    def __init__(
        self,
        config: Config | None = None,
        *,
        subject: Subject | None = None,
        runtime: InstanceRuntime | None = None,
        executor: CommandExecutor | None = None,
    ) -> None:
        self._instances: dict[str, object] = {}
        if config is None:
            from kitchenmatrix.core.config import get_config
            config = get_config()
        self._config = config
        self.subject = subject
        self._executor = executor
        if runtime is not None:
            self._instances["runtime"] = runtime

    @property
    def config(self) -> Config:
        return self._config

    @property
    def executor(self) -> CommandExecutor | None:
        return self._executor

    # ---- 定义 ----

    @property
    def kitchen_file(self) -> Path:
        path = Path(self._config.kitchen_file)
        if path.is_absolute():
            return path
        base = self.subject.directory if self.subject is not None else Path.cwd()
        return base / path

    @property
    def catalog(self) -> PlatformCatalog:
        if "catalog" not in self._instances:
            from kitchenmatrix.core.catalog import PlatformCatalog
            self._instances["catalog"] = PlatformCatalog.from_kitchen_file(self.kitchen_file)
        return self._instances["catalog"]  # type: ignore[return-value]

    @property
    def resolver(self) -> RunListResolver:
        if "resolver" not in self._instances:
            from kitchenmatrix.core.runlist import RunListResolver
            self._instances["resolver"] = RunListResolver(self.catalog)
        return self._instances["resolver"]  # type: ignore[return-value]

    # ---- 实例 ----

    @property
    def runtime(self) -> InstanceRuntime:
        if "runtime" not in self._instances:
            from kitchenmatrix.services.instance import LxcRuntime
            self._instances["runtime"] = LxcRuntime(
                lxc_path=self._config.lxc_path,
                timeout=self._config.command_timeout,
                executor=self._executor,
            )
        return self._instances["runtime"]  # type: ignore[return-value]

    @property
    def mappings(self) -> InstanceMappings:
        if "mappings" not in self._instances:
            from kitchenmatrix.services.instance import InstanceMappings
            self._instances["mappings"] = InstanceMappings(self._config.mappings_file)
        return self._instances["mappings"]  # type: ignore[return-value]

    @property
    def controller(self) -> InstanceController:
        if "controller" not in self._instances:
            from kitchenmatrix.services.instance import InstanceController
            self._instances["controller"] = InstanceController(self.runtime, self.mappings)
        return self._instances["controller"]  # type: ignore[return-value]

    @property
    def harness(self) -> TestHarnessRunner:
        if "harness" not in self._instances:
            from kitchenmatrix.services.harness import TestHarnessRunner
            self._instances["harness"] = TestHarnessRunner(
                self.controller,
                busser_root=self._config.busser_root,
                ruby_bindir=self._config.ruby_bindir,
            )
        return self._instances["harness"]  # type: ignore[return-value]

    @property
    def writer(self) -> CellConfigWriter:
        if "writer" not in self._instances:
            from kitchenmatrix.services.config_writer import CellConfigWriter
            self._instances["writer"] = CellConfigWriter(self._config.node_configs_dir)
        return self._instances["writer"]  # type: ignore[return-value]

    # ---- 按次构造 ----

    def require_subject(self) -> Subject:
        if self.subject is None:
            from kitchenmatrix.core.exceptions import ValidationError
            raise ValidationError("未指定被测 cookbook")
        return self.subject

    def vendorer(self) -> Vendorer:
        from kitchenmatrix.services.vendor import select_vendorer
        return select_vendorer(
            self.require_subject(),
            self._config.store_path,
            community_site=self._config.community_site,
            timeout=self._config.command_timeout,
            executor=self._executor,
        )

    def server(self) -> ConvergenceServer:
        from kitchenmatrix.services.server import ConvergenceServer, resolve_settings
        subject = self.require_subject()
        settings = resolve_settings(self._config.local_server, solo=subject.solo)
        return ConvergenceServer(self.controller, settings, subject=subject.name)

    def lifecycle(self, *, teardown: bool = True, cluster: bool = False) -> CellLifecycle:
        from kitchenmatrix.services.lifecycle import CellLifecycle
        subject = self.require_subject()
        fixtures = self._config.cluster_test_path if cluster else self._config.integration_test_path
        return CellLifecycle(
            catalog=self.catalog,
            resolver=self.resolver,
            controller=self.controller,
            harness=self.harness,
            writer=self.writer,
            test_root=subject.test_root(fixtures),
            cookbook_path=self._config.vendor_dir,
            teardown=teardown,
        )


# ---- 全局单例 ----

_global: ServiceContainer | None = None
_global_lock = threading.Lock()


def get_container() -> ServiceContainer:
    """获取全局 ServiceContainer 单例（线程安全）"""
    global _global  # noqa: PLW0603
    if _global is not None:
        return _global
    with _global_lock:
        if _global is None:
            _global = ServiceContainer()
        return _global


def set_container(container: ServiceContainer) -> None:
    """由 CLI 入口在解析完参数后安装"""
    global _global  # noqa: PLW0603
    with _global_lock:
        _global = container


def reset_container() -> None:
    """重置全局容器（仅用于测试）"""
    global _global  # noqa: PLW0603
    with _global_lock:
        _global = None
