"""测试单元生命周期测试"""

from __future__ import annotations

import json
import subprocess

import pytest

from kitchenmatrix.core.exceptions import ExecutionError
from kitchenmatrix.core.models import Cell, CellRun, CellState, OutcomeKind
from kitchenmatrix.services.container import ServiceContainer


class TestCellLifecycle:
    """单元状态机测试"""

    @pytest.fixture()
    def lifecycle(self, container):
        return container.lifecycle()

    @pytest.fixture()
    def cell(self, name_of):
        return Cell("ubuntu-12.04", "default", name_of("ubuntu-12.04", "default"))

    def test_happy_path(self, lifecycle, cell, runtime):
        run = lifecycle.execute(cell)
        assert run.outcome.success
        assert run.history == [
            CellState.PENDING, CellState.PROVISIONING, CellState.PROVISIONED,
            CellState.TESTING, CellState.SUCCEEDED, CellState.DESTROYING, CellState.DESTROYED,
        ]
        assert runtime.handles("create") == [cell.instance_name]
        assert runtime.handles("destroy") == [cell.instance_name]

    def test_solo_config_written(self, lifecycle, cell, runtime, config):
        run = CellRun(cell=cell)
        assert lifecycle.provision(run)
        dna = json.loads((config.node_configs_dir / cell.instance_name / "dna.json").read_text(encoding="utf-8"))
        assert dna["run_list"] == ["recipe[apt]", "recipe[demo]"]
        assert (config.node_configs_dir / cell.instance_name / "solo.rb").exists()
        assert runtime.converged[-1]["cookbook_path"] == str(config.vendor_dir)
        assert runtime.converged[-1]["server_url"] == ""

    def test_cluster_converges_against_server(self, lifecycle, cell, runtime, config):
        bound = lifecycle.with_server("http://10.0.3.10:8889")
        assert bound.cluster and not lifecycle.cluster
        assert bound.provision(CellRun(cell=cell))
        assert not (config.node_configs_dir / cell.instance_name / "solo.rb").exists()
        assert runtime.converged[-1]["server_url"] == "http://10.0.3.10:8889"

    def test_converge_failure_is_provision_failed(self, lifecycle, cell, runtime):
        runtime.converge_failures.add(cell.instance_name)
        run = lifecycle.execute(cell)
        assert run.outcome.kind == OutcomeKind.PROVISION_FAILED
        assert CellState.TESTING not in run.history
        assert run.state == CellState.DESTROYED
        assert runtime.handles("destroy") == [cell.instance_name]

    def test_teardown_after_test_failure(self, lifecycle, cell, runtime):
        runtime.run_failures.add(cell.instance_name)
        run = lifecycle.execute(cell)
        assert run.outcome.kind == OutcomeKind.TEST_FAILED
        assert not run.outcome.success
        assert runtime.handles("destroy") == [cell.instance_name]
        assert run.state == CellState.DESTROYED

    def test_timeout_counts_as_failure(self, lifecycle, cell, monkeypatch):
        def slow(*args, **kwargs):
            raise subprocess.TimeoutExpired("busser test", 5)

        monkeypatch.setattr(lifecycle.harness, "prepare", slow)
        run = lifecycle.execute(cell)
        assert run.outcome.kind == OutcomeKind.TEST_FAILED
        assert "timed out" in run.outcome.detail

    def test_no_teardown_keeps_instance(self, container, cell, runtime):
        run = container.lifecycle(teardown=False).execute(cell)
        assert run.outcome.success
        assert run.state == CellState.SUCCEEDED
        assert runtime.handles("destroy") == []

    def test_no_teardown_provision_failure_is_fatal(self, container, cell, runtime):
        runtime.converge_failures.add(cell.instance_name)
        run = container.lifecycle(teardown=False).execute(cell)
        assert run.state == CellState.FAILED_FATAL
        assert run.outcome.kind == OutcomeKind.PROVISION_FAILED

    def test_unexpected_error_is_provision_failed(self, lifecycle, cell, runtime, monkeypatch):
        def broken(*args, **kwargs):
            raise TypeError("Object of type date is not JSON serializable")

        monkeypatch.setattr(lifecycle.writer, "write", broken)
        run = lifecycle.execute(cell)
        assert run.outcome.kind == OutcomeKind.PROVISION_FAILED
        assert "JSON serializable" in run.outcome.detail
        assert run.state == CellState.DESTROYED
        assert runtime.handles("destroy") == [cell.instance_name]

    def test_unexpected_test_error_is_test_failed(self, lifecycle, cell, runtime, monkeypatch):
        def broken(*args, **kwargs):
            raise KeyError("busser")

        monkeypatch.setattr(lifecycle.harness, "run", broken)
        run = lifecycle.execute(cell)
        assert run.outcome.kind == OutcomeKind.TEST_FAILED
        assert runtime.handles("destroy") == [cell.instance_name]

    def test_destroy_failure_keeps_outcome(self, lifecycle, cell, monkeypatch):
        def broken(name):
            raise ExecutionError("lxc-destroy失败")

        monkeypatch.setattr(lifecycle.controller, "destroy", broken)
        run = lifecycle.execute(cell)
        assert run.outcome.success
        assert run.state == CellState.DESTROYING

    def test_test_requires_provisioned(self, lifecycle, cell):
        with pytest.raises(ExecutionError, match="未装配"):
            lifecycle.test(CellRun(cell=cell))

    def test_unknown_suite_runs_with_platform_baseline(self, lifecycle, name_of, runtime, config):
        cell = Cell("centos-6.4", "db", name_of("centos-6.4", "db"))
        run = lifecycle.execute(cell)
        assert run.outcome.success
        dna = json.loads((config.node_configs_dir / cell.instance_name / "dna.json").read_text(encoding="utf-8"))
        assert dna == {"run_list": ["recipe[yum]"]}
        assert runtime.instances == {}


class TestCellLifecycleOnLxc:
    """基于 LXC 运行时的生命周期测试"""

    @pytest.fixture()
    def lifecycle(self, config, subject, executor):
        return ServiceContainer(config, subject=subject, executor=executor).lifecycle()

    @pytest.fixture()
    def cell(self, name_of):
        return Cell("ubuntu-12.04", "default", name_of("ubuntu-12.04", "default"))

    def test_failed_start_is_destroyed(self, lifecycle, cell, executor):
        executor.respond("lxc-start", returncode=1, stderr="container failed to start")
        run = lifecycle.execute(cell)
        assert run.outcome.kind == OutcomeKind.PROVISION_FAILED
        assert run.state == CellState.DESTROYED
        assert f"lxc-destroy -n {cell.instance_name}" in executor.commands
        assert lifecycle.controller.mappings.get(cell.instance_name) is None
