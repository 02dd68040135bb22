"""平台 / 套件目录

从 .kitchen.yml 加载平台、套件与集群定义，整个编排过程中只读。

.kitchen.yml 片段:
    platforms:
      - name: ubuntu-12.04
        run_list: ["recipe[apt]"]
        attributes: {apt: {compile_time_update: true}}
        driver_config: {template: ubuntu_1204}   # 可选，缺省由平台名推导
    suites:
      - name: default
        run_list: ["recipe[mycookbook]"]
        attributes: {}
    clusters:
      web: [db, app, lb]
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import yaml

from kitchenmatrix.core.exceptions import (
    ClusterInvalidError,
    ConfigError,
    InvalidPlatformError,
)
from kitchenmatrix.core.models import PlatformDefinition, SuiteDefinition
from kitchenmatrix.utils.fileio import load_yaml

logger = logging.getLogger(__name__)


def _as_run_list(value: Any, owner: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if not isinstance(value, list):
        raise ConfigError(f"{owner} 的 run_list 必须是列表")
    return tuple(str(item) for item in value)


def _as_attributes(value: Any, owner: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"{owner} 的 attributes 必须是字典")
    try:
        json.dumps(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{owner} 的 attributes 无法序列化为 JSON: {e}") from e
    return value


class PlatformCatalog:
    """平台、套件、集群定义的只读目录"""

    def __init__(
        self,
        platforms: list[PlatformDefinition] | None = None,
        suites: list[SuiteDefinition] | None = None,
        clusters: dict[str, list[str]] | None = None,
    ) -> None:
        self._platforms: dict[str, PlatformDefinition] = {}
        for p in platforms or []:
            if p.name in self._platforms:
                raise ConfigError(f"平台重复定义: {p.name}")
            self._platforms[p.name] = p
        self._suites: dict[str, SuiteDefinition] = {}
        for s in suites or []:
            if s.name in self._suites:
                raise ConfigError(f"套件重复定义: {s.name}")
            self._suites[s.name] = s
        self.clusters: dict[str, list[str]] = {
            k: list(v) for k, v in (clusters or {}).items()
        }

    @classmethod
    def from_kitchen_file(cls, path: str | Path) -> PlatformCatalog:
        """解析 .kitchen.yml，文件不存在时返回空目录"""
        try:
            data = load_yaml(path)
        except (yaml.YAMLError, OSError, ValueError) as e:
            raise ConfigError(f"解析定义文件失败: {path}: {e}") from e

        platforms: list[PlatformDefinition] = []
        for raw in data.get("platforms") or []:
            if not isinstance(raw, dict) or not raw.get("name"):
                raise ConfigError(f"平台定义缺少 name: {raw!r}")
            name = str(raw["name"])
            driver = raw.get("driver_config") or {}
            platforms.append(PlatformDefinition(
                name=name,
                template=str(driver.get("template", "")),
                run_list=_as_run_list(raw.get("run_list"), f"平台 {name}"),
                attributes=_as_attributes(raw.get("attributes"), f"平台 {name}"),
            ))

        suites: list[SuiteDefinition] = []
        for raw in data.get("suites") or []:
            if not isinstance(raw, dict) or not raw.get("name"):
                raise ConfigError(f"套件定义缺少 name: {raw!r}")
            name = str(raw["name"])
            suites.append(SuiteDefinition(
                name=name,
                run_list=_as_run_list(raw.get("run_list"), f"套件 {name}"),
                attributes=_as_attributes(raw.get("attributes"), f"套件 {name}"),
            ))

        clusters = data.get("clusters") or {}
        if not isinstance(clusters, dict):
            raise ConfigError("clusters 必须是 集群名 -> 套件列表 的字典")

        logger.info(
            "定义文件已加载: %s (%d 平台, %d 套件, %d 集群)",
            path, len(platforms), len(suites), len(clusters),
        )
        return cls(
            platforms=platforms,
            suites=suites,
            clusters={str(k): [str(s) for s in (v or [])] for k, v in clusters.items()},
        )

    # ---- 平台 ----

    def platforms(self) -> list[PlatformDefinition]:
        """所有平台定义（按定义顺序）"""
        return list(self._platforms.values())

    def platform_names(self) -> list[str]:
        return list(self._platforms)

    def lookup(self, name: str) -> PlatformDefinition:
        """按名查找平台，不存在时抛 InvalidPlatformError 并列出可用平台"""
        platform = self._platforms.get(name)
        if platform is None:
            raise InvalidPlatformError(name, list(self._platforms))
        return platform

    def __contains__(self, name: object) -> bool:
        return name in self._platforms

    # ---- 套件 ----

    def suites(self) -> list[SuiteDefinition]:
        return list(self._suites.values())

    def suite_names(self) -> list[str]:
        return list(self._suites)

    def suite(self, name: str) -> SuiteDefinition | None:
        return self._suites.get(name)

    # ---- 集群 ----

    def cluster(self, name: str) -> list[str]:
        """集群内的套件列表，集群未定义时抛 ClusterInvalidError"""
        if name not in self.clusters:
            raise ClusterInvalidError(name)
        return list(self.clusters[name])
