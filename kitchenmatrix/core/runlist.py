"""run-list 与属性合并

  - run-list: 平台基线在前，套件独有条目按套件顺序追加，精确字符串去重
  - 属性: 平台基线深拷贝后，套件属性逐层深度合并，叶子冲突以套件为准
  - 套件在目录中不存在时不合并任何套件内容（静默，不报错）：
    集群专用套件可能没有在 suites 中定义
"""

from __future__ import annotations

import copy
import logging
from typing import Any, Iterable, Mapping

from kitchenmatrix.core.catalog import PlatformCatalog
from kitchenmatrix.core.models import ResolvedConfig

logger = logging.getLogger(__name__)


def merge_run_lists(*run_lists: Iterable[str]) -> list[str]:
    """有序并集，保留首次出现的位置"""
    seen: set[str] = set()
    merged: list[str] = []
    for run_list in run_lists:
        for item in run_list:
            if item not in seen:
                seen.add(item)
                merged.append(item)
    return merged


def deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """返回新字典: base 的深拷贝之上递归覆盖 override

    两侧同键均为字典时递归合并，否则 override 的值整体替换。
    """
    result: dict[str, Any] = copy.deepcopy(dict(base))
    for key, value in override.items():
        current = result.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            result[key] = deep_merge(current, value)
        else:
            result[key] = copy.deepcopy(value)
    return result


class RunListResolver:
    """计算单元的生效 run-list 与属性"""

    def __init__(self, catalog: PlatformCatalog) -> None:
        self._catalog = catalog

    def resolve(self, platform_name: str, suite_name: str) -> ResolvedConfig:
        platform = self._catalog.lookup(platform_name)
        suite = self._catalog.suite(suite_name)
        if suite is None:
            logger.debug("套件 %s 未在定义文件中出现，仅使用平台 %s 的基线", suite_name, platform_name)
            return ResolvedConfig(
                run_list=merge_run_lists(platform.run_list),
                attributes=copy.deepcopy(platform.attributes),
            )
        return ResolvedConfig(
            run_list=merge_run_lists(platform.run_list, suite.run_list),
            attributes=deep_merge(platform.attributes, suite.attributes),
        )
