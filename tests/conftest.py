"""公共夹具: 内存假运行时、假命令执行器、示例 cookbook"""

from __future__ import annotations

import shlex
import textwrap
from pathlib import Path

import pytest

from kitchenmatrix.core.config import Config
from kitchenmatrix.core.models import instance_name_for
from kitchenmatrix.core.subject import Subject
from kitchenmatrix.services.container import ServiceContainer, reset_container
from kitchenmatrix.utils.shell import CommandResult

KITCHEN_YML = textwrap.dedent("""\
    platforms:
      - name: ubuntu-12.04
        run_list: ["recipe[apt]"]
        attributes:
          apt: {update: true, mirror: "archive"}
      - name: centos-6.4
        run_list: ["recipe[yum]"]
        driver_config: {template: centos_64_base}
    suites:
      - name: default
        run_list: ["recipe[demo]"]
      - name: server
        run_list: ["recipe[apt]", "recipe[demo::server]"]
        attributes:
          apt: {update: false}
          demo: {port: 80}
    clusters:
      web: [db, app, lb]
""")


def cell_name(platform: str, suite: str, subject: str = "demo") -> str:
    return instance_name_for(subject, platform, suite)


class FakeRuntime:
    """内存中的实例运行时

    converge_failures / run_failures 中的句柄在对应操作上返回失败。
    """

    def __init__(self) -> None:
        self.instances: dict[str, str] = {}
        self.calls: list[tuple[str, str]] = []
        self.commands: list[tuple[str, str]] = []
        self.converged: list[dict[str, str]] = []
        self.converge_failures: set[str] = set()
        self.run_failures: set[str] = set()

    def create(self, handle: str, template: str) -> None:
        self.calls.append(("create", handle))
        self.instances[handle] = template

    def exists(self, handle: str) -> bool:
        return handle in self.instances

    def state(self, handle: str) -> str:
        return "running" if handle in self.instances else "missing"

    def address(self, handle: str) -> str:
        return "10.0.3.10"

    def converge(
        self, handle: str, config_dir: str, *,
        server_url: str = "", cookbook_path: str = "",
    ) -> bool:
        self.calls.append(("converge", handle))
        self.converged.append({
            "handle": handle, "config_dir": config_dir,
            "server_url": server_url, "cookbook_path": cookbook_path,
        })
        return handle not in self.converge_failures

    def run(self, handle: str, command: str, *, stream_output: bool = False) -> bool:
        self.calls.append(("run", handle))
        self.commands.append((handle, command))
        return handle not in self.run_failures

    def destroy(self, handle: str) -> None:
        self.calls.append(("destroy", handle))
        self.instances.pop(handle, None)

    def handles(self, op: str) -> list[str]:
        return [h for name, h in self.calls if name == op]


class FakeExecutor:
    """记录所有命令；按前缀匹配返回预设结果，默认成功"""

    def __init__(self) -> None:
        self.calls: list[dict] = []
        self.rules: list[tuple[str, CommandResult]] = []

    def respond(self, prefix: str, returncode: int = 0, stdout: str = "", stderr: str = "") -> None:
        self.rules.insert(0, (prefix, CommandResult(returncode, stdout, stderr)))

    def execute(self, cmd, *, cwd=None, env=None, timeout=None, stream=None) -> CommandResult:
        argv = shlex.split(cmd) if isinstance(cmd, str) else list(cmd)
        self.calls.append({"argv": argv, "cwd": cwd, "timeout": timeout, "stream": stream})
        line = " ".join(argv)
        for prefix, result in self.rules:
            if line.startswith(prefix):
                return result
        return CommandResult(0)

    @property
    def commands(self) -> list[str]:
        return [" ".join(c["argv"]) for c in self.calls]


@pytest.fixture(autouse=True)
def _reset_globals():
    yield
    reset_container()


@pytest.fixture()
def cookbook(tmp_path) -> Path:
    """带 metadata.rb、.kitchen.yml 和 default 套件夹具的示例 cookbook"""
    root = tmp_path / "demo"
    root.mkdir()
    (root / "metadata.rb").write_text("name 'demo'\nversion '0.1.0'\n", encoding="utf-8")
    (root / ".kitchen.yml").write_text(KITCHEN_YML, encoding="utf-8")
    spec_dir = root / "test" / "integration" / "default" / "serverspec"
    spec_dir.mkdir(parents=True)
    (spec_dir / "default_spec.rb").write_text("describe port(80) { it { should be_listening } }\n")
    return root


@pytest.fixture()
def runtime() -> FakeRuntime:
    return FakeRuntime()


@pytest.fixture()
def executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture()
def config(tmp_path) -> Config:
    return Config(store_dir=str(tmp_path / "store"))


@pytest.fixture()
def subject(cookbook) -> Subject:
    return Subject(name="demo", directory=cookbook, solo=True)


@pytest.fixture()
def container(config, subject, runtime, executor) -> ServiceContainer:
    return ServiceContainer(config, subject=subject, runtime=runtime, executor=executor)


@pytest.fixture()
def name_of():
    """(platform, suite) → 示例 cookbook 的实例名"""
    return cell_name
