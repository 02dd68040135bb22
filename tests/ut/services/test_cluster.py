"""集群模式会话测试"""

from __future__ import annotations

import pytest

from kitchenmatrix.core.exceptions import ExecutionError
from kitchenmatrix.core.models import OutcomeKind
from kitchenmatrix.core.results import ResultsTable
from kitchenmatrix.services.cluster import ClusterSession

PLATFORMS = ["ubuntu-12.04", "centos-6.4"]
SUITES = ["db", "app", "lb"]


class TestClusterSession:
    """先全部装配、再全部测试 的集群流程"""

    @pytest.fixture()
    def session(self, container):
        return ClusterSession(
            container.lifecycle(cluster=True),
            container.server(),
            container.vendorer(),
            subject="demo",
        )

    @pytest.fixture()
    def cluster_fixtures(self, cookbook):
        bats = cookbook / "test" / "cluster" / "app" / "bats"
        bats.mkdir(parents=True)
        (bats / "app.bats").write_text("@test 'up' { true; }\n", encoding="utf-8")

    def test_all_pass(self, session, runtime, executor, name_of, cluster_fixtures):
        table = session.run("web", SUITES, PLATFORMS, ResultsTable(PLATFORMS))
        assert table.success
        assert [o.suite for o in table.outcomes("centos-6.4")] == SUITES

        # 服务器只启动一次，cookbook 只上传一次
        assert runtime.handles("create").count("demo-server") == 1
        uploads = [c for c in executor.commands if c.startswith("knife cookbook upload")]
        assert len(uploads) == 1
        assert uploads[0].endswith("--server-url http://10.0.3.10:8889")

        # 同一平台内所有套件先装配，再测试
        calls = runtime.calls
        last_converge = max(i for i, c in enumerate(calls) if c == ("converge", name_of("ubuntu-12.04", "lb")))
        first_test = min(i for i, c in enumerate(calls) if c == ("run", name_of("ubuntu-12.04", "app")))
        assert last_converge < first_test

        assert runtime.converged[0]["server_url"] == "http://10.0.3.10:8889"
        assert runtime.handles("destroy")[-1] == "demo-server"
        assert runtime.instances == {}

    def test_provision_failure_scrubs_platform(self, session, runtime, name_of):
        runtime.converge_failures.add(name_of("ubuntu-12.04", "app"))
        table = session.run("web", SUITES, PLATFORMS, ResultsTable(PLATFORMS))

        ubuntu = table.outcomes("ubuntu-12.04")
        assert [(o.suite, o.kind) for o in ubuntu] == [
            ("db", OutcomeKind.SCRUBBED),
            ("app", OutcomeKind.PROVISION_FAILED),
            ("lb", OutcomeKind.SCRUBBED),
        ]
        assert all(o.success for o in table.outcomes("centos-6.4"))
        assert table.failed_suites() == ["app", "db", "lb"]

        # 未尝试的 lb 既没有创建也不需要销毁
        assert name_of("ubuntu-12.04", "lb") not in runtime.handles("create")
        assert runtime.handles("destroy") == [
            name_of("ubuntu-12.04", "db"),
            name_of("ubuntu-12.04", "app"),
            name_of("centos-6.4", "db"),
            name_of("centos-6.4", "app"),
            name_of("centos-6.4", "lb"),
            "demo-server",
        ]
        # 该平台的套件一个也没有测试
        assert not any(h.startswith("demo-ubuntu") for h in runtime.handles("run"))

    def test_first_suite_failure_scrubs_rest(self, session, runtime, name_of):
        runtime.converge_failures.add(name_of("centos-6.4", "db"))
        table = session.run("web", SUITES, ["centos-6.4"], ResultsTable(["centos-6.4"]))
        assert [o.kind for o in table.outcomes("centos-6.4")] == [
            OutcomeKind.PROVISION_FAILED, OutcomeKind.SCRUBBED, OutcomeKind.SCRUBBED,
        ]
        assert runtime.handles("destroy") == [name_of("centos-6.4", "db"), "demo-server"]

    def test_server_destroyed_on_error(self, session, runtime, executor):
        executor.respond("knife cookbook upload", returncode=1, stderr="connection refused")
        with pytest.raises(ExecutionError, match="knife cookbook upload失败"):
            session.run("web", SUITES, PLATFORMS, ResultsTable(PLATFORMS))
        assert runtime.handles("destroy") == ["demo-server"]

    def test_parallel_ignored(self, session, caplog):
        table = session.run("web", SUITES, ["centos-6.4"], ResultsTable(["centos-6.4"]), parallel=True)
        assert table.success
        assert "不支持并行" in caplog.text

    def test_no_teardown_keeps_cells(self, container, runtime):
        session = ClusterSession(
            container.lifecycle(teardown=False, cluster=True),
            container.server(), container.vendorer(), subject="demo",
        )
        session.run("web", SUITES, ["centos-6.4"], ResultsTable(["centos-6.4"]))
        assert runtime.handles("destroy") == ["demo-server"]
        assert len(runtime.instances) == 3
