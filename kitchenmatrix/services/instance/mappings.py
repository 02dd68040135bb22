"""实例映射持久化

逻辑实例名 → 运行时句柄（及模板 / 平台 / 套件），保存在 <store>/mappings.yml 的
test_mappings 段中，使重复调用能找回已存在的实例。

并行模式下多个单元线程会同时写入，每次读-改-存都在锁内完成。
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any

from kitchenmatrix.utils.fileio import load_yaml, save_yaml

logger = logging.getLogger(__name__)


class InstanceMappings:
    """YAML 文件支撑的实例映射表"""

    section_key: str = "test_mappings"

    def __init__(self, mappings_file: str | Path) -> None:
        self.mappings_file = Path(mappings_file)
        self._lock = threading.RLock()
        self._data: dict[str, Any] = load_yaml(self.mappings_file)

    def _section(self) -> dict[str, dict[str, Any]]:
        result: dict[str, dict[str, Any]] = self._data.setdefault(self.section_key, {})
        return result

    def _save(self) -> None:
        save_yaml(self.mappings_file, self._data)

    def get(self, name: str) -> dict[str, Any] | None:
        with self._lock:
            entry = self._section().get(name)
            return dict(entry) if entry is not None else None

    def put(self, name: str, entry: dict[str, Any]) -> dict[str, Any]:
        with self._lock:
            self._section()[name] = dict(entry)
            self._save()
            return entry

    def remove(self, name: str) -> bool:
        with self._lock:
            section = self._section()
            if name not in section:
                return False
            del section[name]
            self._save()
            return True

    def list(self) -> list[dict[str, Any]]:
        """所有条目（带 name 字段）"""
        with self._lock:
            return [{"name": k, **v} for k, v in self._section().items()]
