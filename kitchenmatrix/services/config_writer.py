"""单元节点配置写入

<store>/node_configs/<instance>/
  dna.json   合并后的属性 + run_list，即交给收敛引擎的输入
  solo.rb    仅 solo 模式: 指向本地 vendored cookbook 目录而非远端服务器
"""

from __future__ import annotations

import copy
import logging
from pathlib import Path

from kitchenmatrix.core.models import Cell, ResolvedConfig
from kitchenmatrix.utils.fileio import atomic_write, write_json

logger = logging.getLogger(__name__)


class CellConfigWriter:
    """把单元生效配置落盘到实例私有目录"""

    def __init__(self, node_configs_dir: str | Path) -> None:
        self.node_configs_dir = Path(node_configs_dir)

    def config_dir(self, instance_name: str) -> Path:
        return self.node_configs_dir / instance_name

    def write(
        self,
        instance_name: str,
        cell: Cell,
        resolved: ResolvedConfig,
        *,
        cookbook_path: str | Path = "",
        solo: bool = True,
    ) -> Path:
        """写入节点配置，返回配置目录"""
        directory = self.config_dir(instance_name)
        directory.mkdir(parents=True, exist_ok=True)

        dna = copy.deepcopy(resolved.attributes)
        dna["run_list"] = list(resolved.run_list)
        write_json(directory / "dna.json", dna)

        if solo:
            atomic_write(directory / "solo.rb", f"cookbook_path '{Path(cookbook_path)}'\n")

        logger.debug(
            "节点配置已写入: %s (%s/%s, solo=%s)",
            directory, cell.platform, cell.suite, solo,
        )
        return directory
