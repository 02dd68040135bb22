"""容器运行时适配

InstanceRuntime 协议抽象实例的创建/收敛/执行/销毁，编排层只依赖协议。
LxcRuntime 为默认实现，通过 lxc-* 命令行工具操作容器。
"""

from __future__ import annotations

import logging
import shlex
import shutil
import sys
from pathlib import Path
from typing import Protocol

from kitchenmatrix.core.exceptions import ExecutionError
from kitchenmatrix.utils.shell import CommandExecutor, get_executor, run_cmd

logger = logging.getLogger(__name__)

# 节点配置在实例内的挂载位置
INSTANCE_CONFIG_DIR = "/etc/chef/kitchenmatrix"


class InstanceRuntime(Protocol):
    """容器 / 虚拟机运行时协议"""

    def create(self, handle: str, template: str) -> None:
        """从模板创建并启动实例"""
        ...

    def exists(self, handle: str) -> bool:
        ...

    def state(self, handle: str) -> str:
        """实例状态（running / stopped / missing ...）"""
        ...

    def address(self, handle: str) -> str:
        ...

    def converge(
        self, handle: str, config_dir: str, *,
        server_url: str = "", cookbook_path: str = "",
    ) -> bool:
        """在实例内执行收敛，server_url 为空时走 solo 模式"""
        ...

    def run(self, handle: str, command: str, *, stream_output: bool = False) -> bool:
        ...

    def destroy(self, handle: str) -> None:
        ...


class LxcRuntime:
    """基于 lxc-* 命令行工具的运行时"""

    def __init__(
        self,
        *,
        lxc_path: str = "/var/lib/lxc",
        timeout: float | None = None,
        executor: CommandExecutor | None = None,
    ) -> None:
        self.lxc_path = Path(lxc_path)
        self.timeout = timeout
        self._executor = executor

    @property
    def executor(self) -> CommandExecutor:
        return self._executor or get_executor()

    def _rootfs(self, handle: str) -> Path:
        return self.lxc_path / handle / "rootfs"

    def _run(self, argv: list[str], label: str) -> None:
        run_cmd(argv, timeout=self.timeout, label=label, executor=self.executor)

    def create(self, handle: str, template: str) -> None:
        self._run(["lxc-copy", "-n", template, "-N", handle], "克隆实例")
        self._run(["lxc-start", "-n", handle, "-d"], "启动实例")
        self._run(["lxc-wait", "-n", handle, "-s", "RUNNING"], "等待实例")

    def exists(self, handle: str) -> bool:
        r = self.executor.execute(["lxc-info", "-n", handle], timeout=self.timeout)
        return r.success

    def state(self, handle: str) -> str:
        r = self.executor.execute(["lxc-info", "-n", handle, "-s"], timeout=self.timeout)
        if not r.success:
            return "missing"
        # 输出形如 "State:          RUNNING"
        _, _, value = r.stdout.partition(":")
        return value.strip().lower() or "unknown"

    def address(self, handle: str) -> str:
        r = self.executor.execute(["lxc-info", "-n", handle, "-i", "-H"], timeout=self.timeout)
        if not r.success or not r.stdout.strip():
            raise ExecutionError(f"无法获取实例地址: {handle}")
        return r.stdout.split()[0]

    def _push_tree(self, handle: str, source: str, target: str) -> None:
        """把宿主目录复制到实例 rootfs 中的目标路径"""
        dest = self._rootfs(handle) / target.lstrip("/")
        shutil.copytree(source, dest, dirs_exist_ok=True)

    def converge(
        self, handle: str, config_dir: str, *,
        server_url: str = "", cookbook_path: str = "",
    ) -> bool:
        self._push_tree(handle, config_dir, INSTANCE_CONFIG_DIR)
        dna = f"{INSTANCE_CONFIG_DIR}/dna.json"
        if server_url:
            command = f"chef-client -S {shlex.quote(server_url)} -j {dna}"
        else:
            # solo.rb 引用宿主机上的 cookbook 路径，实例内镜像同一路径
            if cookbook_path:
                self._push_tree(handle, cookbook_path, cookbook_path)
            command = f"chef-solo -c {INSTANCE_CONFIG_DIR}/solo.rb -j {dna}"
        return self.run(handle, command, stream_output=True)

    def run(self, handle: str, command: str, *, stream_output: bool = False) -> bool:
        argv = ["lxc-attach", "-n", handle, "--", "/bin/sh", "-c", command]
        r = self.executor.execute(
            argv, timeout=self.timeout,
            stream=sys.stdout if stream_output else None,
        )
        if not r.success:
            logger.warning("实例 %s 命令失败 (rc=%d): %s", handle, r.returncode, command)
        return r.success

    def destroy(self, handle: str) -> None:
        r = self.executor.execute(["lxc-stop", "-n", handle, "-k"], timeout=self.timeout)
        if not r.success:
            logger.debug("lxc-stop %s 返回 %d，继续销毁", handle, r.returncode)
        self._run(["lxc-destroy", "-n", handle], "销毁实例")
