"""Shell 命令执行工具 — 统一子进程调用

所有外部工具（lxc / berks / librarian-chef / knife）都经由 CommandExecutor 协议调用，
测试时注入 mock 实现即可，无需 patch subprocess。
"""

from __future__ import annotations

import logging
import shlex
import subprocess
import threading
from dataclasses import dataclass
from typing import Protocol, TextIO

from kitchenmatrix.core.exceptions import ExecutionError

logger = logging.getLogger(__name__)


# =========================================================================
# 命令执行结果
# =========================================================================

@dataclass
class CommandResult:
    """命令执行结果（与 subprocess 解耦）"""

    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def success(self) -> bool:
        return self.returncode == 0


# =========================================================================
# 命令执行器协议
# =========================================================================

class CommandExecutor(Protocol):
    """命令执行器协议

    stream 非空时实时把合并后的 stdout/stderr 写入 stream（用于测试输出直播），
    此时 CommandResult.stdout 仍包含完整输出。
    """

    def execute(
        self,
        cmd: str | list[str],
        *,
        cwd: str | None = None,
        env: dict[str, str] | None = None,
        timeout: float | None = None,
        stream: TextIO | None = None,
    ) -> CommandResult:
        ...


# =========================================================================
# 默认实现: 本地执行器
# =========================================================================

class LocalExecutor:
    """本地子进程执行器（默认实现）"""

    def execute(
        self,
        cmd: str | list[str],
        *,
        cwd: str | None = None,
        env: dict[str, str] | None = None,
        timeout: float | None = None,
        stream: TextIO | None = None,
    ) -> CommandResult:
        args = shlex.split(cmd) if isinstance(cmd, str) else list(cmd)
        if stream is None:
            r = subprocess.run(
                args, capture_output=True, text=True,
                cwd=cwd, env=env, check=False, timeout=timeout,
            )
            return CommandResult(returncode=r.returncode, stdout=r.stdout, stderr=r.stderr)
        return self._execute_streaming(args, cwd=cwd, env=env, timeout=timeout, stream=stream)

    @staticmethod
    def _execute_streaming(
        args: list[str],
        *,
        cwd: str | None,
        env: dict[str, str] | None,
        timeout: float | None,
        stream: TextIO,
    ) -> CommandResult:
        proc = subprocess.Popen(
            args, stdout=subprocess.PIPE, stderr=subprocess.STDOUT,
            text=True, cwd=cwd, env=env,
        )
        if proc.stdout is None:
            proc.kill()
            proc.wait()
            raise ExecutionError(f"无法读取命令输出: {args[0]}")
        timed_out = threading.Event()

        def _kill() -> None:
            timed_out.set()
            proc.kill()

        timer = threading.Timer(timeout, _kill) if timeout else None
        if timer is not None:
            timer.start()
        lines: list[str] = []
        try:
            for line in proc.stdout:
                lines.append(line)
                stream.write(line)
                stream.flush()
            returncode = proc.wait()
        finally:
            if timer is not None:
                timer.cancel()
            if proc.poll() is None:
                proc.kill()
                proc.wait()
            proc.stdout.close()
        if timed_out.is_set():
            raise subprocess.TimeoutExpired(args, timeout or 0, output="".join(lines))
        return CommandResult(returncode=returncode, stdout="".join(lines))


# =========================================================================
# 全局默认执行器（可替换）
# =========================================================================

_default_executor: CommandExecutor = LocalExecutor()


def get_executor() -> CommandExecutor:
    """获取全局默认命令执行器"""
    return _default_executor


def set_executor(executor: CommandExecutor) -> None:
    """替换全局默认命令执行器（用于测试或远程执行场景）"""
    global _default_executor  # noqa: PLW0603
    _default_executor = executor


def run_cmd(
    cmd: str | list[str],
    *,
    cwd: str | None = None,
    env: dict[str, str] | None = None,
    timeout: float | None = None,
    label: str = "cmd",
    executor: CommandExecutor | None = None,
) -> CommandResult:
    """执行命令，失败抛 ExecutionError

    Args:
        cmd: 命令字符串或 argv 列表
        cwd: 工作目录
        env: 环境变量（不传则继承当前进程）
        timeout: 超时秒数（None 表示不限）
        label: 日志 / 错误信息标签
        executor: 指定执行器，默认取全局执行器
    """
    shown = cmd if isinstance(cmd, str) else shlex.join(cmd)
    logger.info("  %s: %s%s", label, shown, f" (cwd={cwd})" if cwd else "")
    r = (executor or get_executor()).execute(cmd, cwd=cwd, env=env, timeout=timeout)
    if not r.success:
        raise ExecutionError(f"{label}失败 (rc={r.returncode}): {(r.stderr or r.stdout)[:500]}")
    return r
