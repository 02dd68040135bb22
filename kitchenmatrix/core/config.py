"""集中配置管理

从 YAML 文件（默认 kitchenmatrix.yml）加载，未识别的键放入 extra。
CLI 入口显式调用 init_config()，其余模块通过 get_config() 读取。
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

from kitchenmatrix.core.exceptions import ConfigError
from kitchenmatrix.utils.fileio import load_yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "kitchenmatrix.yml"


@dataclass
class Config:
    """框架全局配置"""

    # 目录
    store_dir: str = ".kitchenmatrix"
    kitchen_file: str = ".kitchen.yml"
    cookbook_paths: list[str] = field(default_factory=list)

    # 测试夹具根目录（相对 cookbook 目录）
    integration_test_path: str = "test/integration"
    cluster_test_path: str = "test/cluster"

    # 实例内路径
    busser_root: str = "/tmp/busser"
    ruby_bindir: str = "/opt/chef/embedded/bin"

    # 运行时
    lxc_path: str = "/var/lib/lxc"
    command_timeout: float | None = None

    # 依赖拉取
    community_site: str = "https://supermarket.chef.io"

    # 集群模式共享服务器
    local_server: dict[str, Any] = field(default_factory=dict)

    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_file(cls, path: str = DEFAULT_CONFIG_FILE) -> Config:
        """从 YAML 文件加载配置，不存在则返回默认；相对 store_dir 以配置文件所在目录为基准"""
        try:
            data = load_yaml(path)
        except (OSError, ValueError) as e:
            raise ConfigError(f"读取配置失败: {path}: {e}") from e
        if not data:
            return cls()
        known = {f for f in cls.__dataclass_fields__}
        matched = {k: v for k, v in data.items() if k in known and k != "extra"}
        extra = {k: v for k, v in data.items() if k not in known}
        cfg = cls(**matched)
        cfg.extra = extra
        base = Path(path).resolve().parent
        if not Path(cfg.store_dir).is_absolute():
            cfg.store_dir = str(base / cfg.store_dir)
        return cfg

    @property
    def store_path(self) -> Path:
        return Path(self.store_dir)

    @property
    def vendor_dir(self) -> Path:
        """vendored cookbook 目录"""
        return self.store_path / "cookbooks"

    @property
    def node_configs_dir(self) -> Path:
        return self.store_path / "node_configs"

    @property
    def mappings_file(self) -> Path:
        return self.store_path / "mappings.yml"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


_current: Config | None = None


def get_config() -> Config:
    """获取当前配置（未初始化则返回默认值）"""
    global _current  # noqa: PLW0603
    if _current is None:
        _current = Config()
    return _current


def init_config(path: str = DEFAULT_CONFIG_FILE) -> Config:
    """从文件初始化全局配置"""
    global _current  # noqa: PLW0603
    _current = Config.from_file(path)
    logger.info("配置已加载: %s", path)
    return _current


def reset_config() -> None:
    """恢复默认配置（仅用于测试）"""
    global _current  # noqa: PLW0603
    _current = None
