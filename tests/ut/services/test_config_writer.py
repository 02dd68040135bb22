"""节点配置写入测试"""

from __future__ import annotations

import json

from kitchenmatrix.core.models import Cell, ResolvedConfig
from kitchenmatrix.services.config_writer import CellConfigWriter


class TestCellConfigWriter:
    cell = Cell("ubuntu-12.04", "default", "demo-ubuntu-12.04-default")

    def test_solo_writes_dna_and_solo_rb(self, tmp_path):
        writer = CellConfigWriter(tmp_path / "node_configs")
        resolved = ResolvedConfig(run_list=["recipe[apt]", "recipe[demo]"], attributes={"apt": {"update": True}})
        directory = writer.write(self.cell.instance_name, self.cell, resolved, cookbook_path="/store/cookbooks")
        assert directory == tmp_path / "node_configs" / "demo-ubuntu-12.04-default"
        dna = json.loads((directory / "dna.json").read_text(encoding="utf-8"))
        assert dna == {"apt": {"update": True}, "run_list": ["recipe[apt]", "recipe[demo]"]}
        assert (directory / "solo.rb").read_text(encoding="utf-8") == "cookbook_path '/store/cookbooks'\n"

    def test_cluster_writes_dna_only(self, tmp_path):
        writer = CellConfigWriter(tmp_path)
        directory = writer.write("n", self.cell, ResolvedConfig(run_list=["recipe[a]"]), solo=False)
        assert (directory / "dna.json").exists()
        assert not (directory / "solo.rb").exists()

    def test_resolved_not_mutated(self, tmp_path):
        resolved = ResolvedConfig(run_list=["recipe[a]"], attributes={"k": {"v": 1}})
        CellConfigWriter(tmp_path).write("n", self.cell, resolved)
        assert "run_list" not in resolved.attributes
