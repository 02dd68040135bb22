"""Config 加载测试"""

from __future__ import annotations

from pathlib import Path

import pytest

from kitchenmatrix.core.config import Config, get_config, init_config, reset_config
from kitchenmatrix.core.exceptions import ConfigError


class TestConfig:
    def test_defaults(self):
        cfg = Config()
        assert cfg.store_dir == ".kitchenmatrix"
        assert cfg.kitchen_file == ".kitchen.yml"
        assert cfg.command_timeout is None
        assert cfg.vendor_dir == Path(".kitchenmatrix") / "cookbooks"
        assert cfg.mappings_file == Path(".kitchenmatrix") / "mappings.yml"

    def test_missing_file_returns_defaults(self, tmp_path):
        cfg = Config.from_file(str(tmp_path / "absent.yml"))
        assert cfg == Config()

    def test_load_with_extra_and_relative_store(self, tmp_path):
        path = tmp_path / "kitchenmatrix.yml"
        path.write_text(
            "store_dir: state\n"
            "command_timeout: 600\n"
            "local_server: {enabled: true, zero: true}\n"
            "custom_key: 42\n",
            encoding="utf-8",
        )
        cfg = Config.from_file(str(path))
        assert cfg.store_path == tmp_path.resolve() / "state"
        assert cfg.command_timeout == 600
        assert cfg.local_server == {"enabled": True, "zero": True}
        assert cfg.extra == {"custom_key": 42}

    def test_absolute_store_kept(self, tmp_path):
        path = tmp_path / "kitchenmatrix.yml"
        path.write_text(f"store_dir: {tmp_path / 'abs'}\n", encoding="utf-8")
        assert Config.from_file(str(path)).store_dir == str(tmp_path / "abs")

    def test_oversized_file(self, tmp_path, monkeypatch):
        import kitchenmatrix.utils.fileio as fileio
        monkeypatch.setattr(fileio, "MAX_YAML_SIZE", 4)
        path = tmp_path / "kitchenmatrix.yml"
        path.write_text("store_dir: state\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="读取配置失败"):
            Config.from_file(str(path))


class TestGlobalConfig:
    def test_init_and_reset(self, tmp_path):
        path = tmp_path / "kitchenmatrix.yml"
        path.write_text("busser_root: /opt/busser\n", encoding="utf-8")
        try:
            init_config(str(path))
            assert get_config().busser_root == "/opt/busser"
        finally:
            reset_config()
        assert get_config().busser_root == "/tmp/busser"
