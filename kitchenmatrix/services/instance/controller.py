"""实例控制器 — 运行时之上的无状态门面

create 对同名实例幂等: 映射表里已有句柄且运行时确认存在时直接复用。
实例名由 (cookbook, platform, suite) 决定，多次运行之间保持不变。
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any

from kitchenmatrix.core.exceptions import ValidationError
from kitchenmatrix.services.instance.mappings import InstanceMappings
from kitchenmatrix.services.instance.runtime import InstanceRuntime

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InstanceHandle:
    """已创建实例的引用"""

    name: str
    handle: str
    template: str
    reused: bool = False


class InstanceController:
    """create / converge / run_command / destroy 一一映射到运行时"""

    def __init__(self, runtime: InstanceRuntime, mappings: InstanceMappings) -> None:
        self.runtime = runtime
        self.mappings = mappings
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, name: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(name, threading.Lock())

    def _handle_of(self, name: str) -> str:
        entry = self.mappings.get(name)
        if entry is None:
            raise ValidationError(f"实例尚未创建: {name}")
        return str(entry["handle"])

    def create(
        self, name: str, template: str, run_list: list[str] | None = None,
        *, platform: str = "", suite: str = "",
    ) -> InstanceHandle:
        """创建实例，已存在则复用"""
        with self._lock_for(name):
            entry = self.mappings.get(name)
            if entry is not None:
                handle = str(entry["handle"])
                if not entry.get("ready", True):
                    logger.warning("实例上次创建未完成，清理后重建: %s", name)
                    if self.runtime.exists(handle):
                        self.runtime.destroy(handle)
                elif self.runtime.exists(handle):
                    logger.info("复用已有实例: %s (handle=%s)", name, handle)
                    return InstanceHandle(
                        name=name, handle=handle,
                        template=str(entry.get("template", template)), reused=True,
                    )
                else:
                    logger.info("映射中的实例已不存在，重新创建: %s", name)

            handle = name
            logger.info("创建实例: %s (template=%s)", name, template)
            entry = {
                "handle": handle,
                "template": template,
                "platform": platform,
                "suite": suite,
                "run_list": list(run_list or []),
                "ready": False,
            }
            # 先登记再创建: 创建中途失败时 destroy 仍能找到半成品实例
            self.mappings.put(name, entry)
            self.runtime.create(handle, template)
            self.mappings.put(name, {**entry, "ready": True})
            return InstanceHandle(name=name, handle=handle, template=template)

    def converge(
        self, name: str, config_dir: str, *,
        server_url: str = "", cookbook_path: str = "",
    ) -> bool:
        handle = self._handle_of(name)
        mode = f"server={server_url}" if server_url else "solo"
        logger.info("收敛实例: %s (%s)", name, mode)
        return self.runtime.converge(
            handle, config_dir, server_url=server_url, cookbook_path=cookbook_path,
        )

    def run_command(self, name: str, command: str, *, stream_output: bool = False) -> bool:
        return self.runtime.run(self._handle_of(name), command, stream_output=stream_output)

    def address(self, name: str) -> str:
        return self.runtime.address(self._handle_of(name))

    def destroy(self, name: str) -> bool:
        """销毁实例并删除映射，未知实例视为已销毁，返回是否实际执行了销毁"""
        with self._lock_for(name):
            entry = self.mappings.get(name)
            handle = str(entry["handle"]) if entry is not None else name
            exists = self.runtime.exists(handle)
            if entry is None and not exists:
                logger.debug("实例不在映射中且运行时不存在，跳过销毁: %s", name)
                return False
            if exists:
                self.runtime.destroy(handle)
            self.mappings.remove(name)
            logger.info("实例已销毁: %s", name)
            return True

    def status(self) -> list[dict[str, Any]]:
        """所有已知实例及其运行时状态"""
        rows = []
        for entry in self.mappings.list():
            rows.append({
                "name": entry["name"],
                "handle": entry.get("handle", ""),
                "platform": entry.get("platform", ""),
                "suite": entry.get("suite", ""),
                "state": self.runtime.state(str(entry.get("handle", entry["name"]))),
            })
        return rows
