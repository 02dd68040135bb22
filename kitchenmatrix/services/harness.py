"""测试工具（busser）在实例内的引导与执行

夹具根目录作为参数逐次传入（integration / cluster 两种布局），不修改任何全局状态。
<test_root>/<suite>/ 下的每个子目录对应一个 busser 插件（serverspec、bats ...），
没有插件时各命令均为空: 空的 setup/sync 直接跳过，空的 run 视为套件通过。
"""

from __future__ import annotations

import base64
import hashlib
import logging
import shlex
import stat
from dataclasses import dataclass, field
from pathlib import Path

from kitchenmatrix.core.exceptions import ExecutionError
from kitchenmatrix.services.instance.controller import InstanceController

logger = logging.getLogger(__name__)

# 这些目录是收敛用的数据，不是测试插件
NON_PLUGIN_DIRS = frozenset({"data", "data_bags", "environments", "nodes", "roles"})


@dataclass
class HarnessHandle:
    """一次 prepare 的产物"""

    suite: str
    test_root: str
    plugins: list[str] = field(default_factory=list)
    setup_cmd: str = ""
    sync_cmd: str = ""
    run_cmd: str = ""


class BusserCommands:
    """按套件夹具生成 busser 的 setup / sync / run 命令"""

    def __init__(
        self, suite: str, test_root: str | Path, *,
        busser_root: str = "/tmp/busser",
        ruby_bindir: str = "/opt/chef/embedded/bin",
    ) -> None:
        self.suite = suite
        self.test_root = Path(test_root)
        self.busser_root = busser_root
        self.ruby_bindir = ruby_bindir

    @property
    def suite_dir(self) -> Path:
        return self.test_root / self.suite

    def plugins(self) -> list[str]:
        if not self.suite_dir.is_dir():
            return []
        return sorted(
            p.name for p in self.suite_dir.iterdir()
            if p.is_dir() and p.name not in NON_PLUGIN_DIRS
        )

    def _env(self) -> str:
        root = shlex.quote(self.busser_root)
        return "\n".join([
            f"BUSSER_ROOT={root}; export BUSSER_ROOT",
            f"GEM_HOME={root}/gems; export GEM_HOME",
            "GEM_PATH=$GEM_HOME; export GEM_PATH",
            "GEM_CACHE=$GEM_HOME/cache; export GEM_CACHE",
        ])

    @property
    def _busser(self) -> str:
        return "$GEM_HOME/bin/busser"

    def setup_cmd(self) -> str:
        plugins = self.plugins()
        if not plugins:
            return ""
        gem = f"{self.ruby_bindir}/gem"
        names = " ".join(f"busser-{p}" for p in plugins)
        return "\n".join([
            self._env(),
            f"{gem} list busser -i >/dev/null 2>&1 || {gem} install busser --no-document",
            f"{self._busser} setup",
            f"{self._busser} plugin install {names}",
        ])

    def _files(self) -> list[Path]:
        files: list[Path] = []
        for plugin in self.plugins():
            files.extend(sorted(p for p in (self.suite_dir / plugin).rglob("*") if p.is_file()))
        return files

    def sync_cmd(self) -> str:
        if not self.plugins():
            return ""
        lines = [self._env(), f"{self._busser} suite cleanup"]
        for path in self._files():
            content = path.read_bytes()
            rel = path.relative_to(self.suite_dir).as_posix()
            dest = f"{self.busser_root}/suites/{rel}"
            perms = format(stat.S_IMODE(path.stat().st_mode), "04o")
            lines.append(
                f"echo {shlex.quote(base64.b64encode(content).decode('ascii'))}"
                f" | {self._busser} deserialize"
                f" --destination={shlex.quote(dest)}"
                f" --md5sum={hashlib.md5(content).hexdigest()}"  # noqa: S324
                f" --perms={perms}"
            )
        return "\n".join(lines)

    def run_cmd(self) -> str:
        if not self.plugins():
            return ""
        return "\n".join([self._env(), f"{self._busser} test"])


class TestHarnessRunner:
    """在运行中的实例里引导测试工具并执行套件"""

    __test__ = False  # 避免被 pytest 当成测试类收集

    def __init__(
        self, controller: InstanceController, *,
        busser_root: str = "/tmp/busser",
        ruby_bindir: str = "/opt/chef/embedded/bin",
    ) -> None:
        self.controller = controller
        self.busser_root = busser_root
        self.ruby_bindir = ruby_bindir

    def prepare(self, instance_name: str, suite_name: str, test_root: str | Path) -> HarnessHandle:
        """生成命令并推送 setup / sync 到实例，空命令跳过"""
        commands = BusserCommands(
            suite_name, test_root,
            busser_root=self.busser_root, ruby_bindir=self.ruby_bindir,
        )
        handle = HarnessHandle(
            suite=suite_name,
            test_root=str(test_root),
            plugins=commands.plugins(),
            setup_cmd=commands.setup_cmd(),
            sync_cmd=commands.sync_cmd(),
            run_cmd=commands.run_cmd(),
        )
        logger.info("测试工具准备: %s (suite=%s, plugins=%s)", instance_name, suite_name, handle.plugins)
        for label, cmd in (("setup", handle.setup_cmd), ("sync", handle.sync_cmd)):
            if not cmd.strip():
                continue
            if not self.controller.run_command(instance_name, cmd):
                raise ExecutionError(f"测试工具 {label} 失败: {instance_name}")
        return handle

    def run(self, handle: HarnessHandle, instance_name: str) -> bool:
        """执行套件测试命令；没有测试命令即视为通过"""
        if not handle.run_cmd.strip():
            logger.info("套件 %s 没有定义测试，视为通过", handle.suite)
            return True
        return self.controller.run_command(instance_name, handle.run_cmd, stream_output=True)
