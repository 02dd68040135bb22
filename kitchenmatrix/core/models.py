"""核心数据模型

平台 / 套件定义、测试单元（Cell）及其状态机、单元结果、集群服务器配置、
矩阵执行选项集中定义于此，其他模块统一从这里导入。
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

# =========================================================================
# 平台 / 套件定义
# =========================================================================


def template_for(platform_name: str) -> str:
    """由平台名推导基础镜像模板名（ubuntu-12.04 -> ubuntu_1204）"""
    return platform_name.replace(".", "").replace("-", "_")


@dataclass(frozen=True)
class PlatformDefinition:
    """目标平台定义

    attributes 为不透明的嵌套字典，未知键原样透传；不参与哈希与比较。
    """

    name: str
    template: str = ""
    run_list: tuple[str, ...] = ()
    attributes: dict[str, Any] = field(
        default_factory=dict, hash=False, compare=False,
    )

    def __post_init__(self) -> None:
        if not self.template:
            object.__setattr__(self, "template", template_for(self.name))


@dataclass(frozen=True)
class SuiteDefinition:
    """测试套件定义"""

    name: str
    run_list: tuple[str, ...] = ()
    attributes: dict[str, Any] = field(
        default_factory=dict, hash=False, compare=False,
    )


# =========================================================================
# 测试单元
# =========================================================================

_UNSAFE_NAME_RE = re.compile(r"[^a-zA-Z0-9_.-]+")


def instance_name_for(subject: str, platform: str, suite: str = "") -> str:
    """生成实例逻辑名: 同一 (cookbook, platform, suite) 在多次运行间保持不变"""
    raw = "-".join(part for part in (subject, platform, suite) if part)
    cleaned = _UNSAFE_NAME_RE.sub("-", raw).strip("-.")
    return cleaned or "kitchenmatrix"


class CellState(str, Enum):
    """测试单元生命周期状态

    pending → provisioning → provisioned → testing → (succeeded | failed)
      → destroying → destroyed
    装配本身失败且无法恢复时终止于 failed_fatal（未启用 teardown）。
    """

    PENDING = "pending"
    PROVISIONING = "provisioning"
    PROVISIONED = "provisioned"
    TESTING = "testing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    DESTROYING = "destroying"
    DESTROYED = "destroyed"
    FAILED_FATAL = "failed_fatal"


class OutcomeKind(str, Enum):
    """单元结果类型。诊断时区分，汇总时 passed 以外一律计为失败"""

    PASSED = "passed"
    TEST_FAILED = "test_failed"
    PROVISION_FAILED = "provision_failed"
    SCRUBBED = "scrubbed"


@dataclass(frozen=True)
class Cell:
    """一个 (platform, suite) 测试单元"""

    platform: str
    suite: str
    instance_name: str


@dataclass
class CellOutcome:
    """单个测试单元的执行结果"""

    platform: str
    suite: str
    success: bool
    kind: OutcomeKind = OutcomeKind.PASSED
    detail: str = ""

    @classmethod
    def passed(cls, cell: Cell) -> CellOutcome:
        return cls(platform=cell.platform, suite=cell.suite, success=True)

    @classmethod
    def test_failed(cls, cell: Cell, detail: str = "") -> CellOutcome:
        return cls(
            platform=cell.platform, suite=cell.suite, success=False,
            kind=OutcomeKind.TEST_FAILED, detail=detail,
        )

    @classmethod
    def provision_failed(cls, cell: Cell, detail: str = "") -> CellOutcome:
        return cls(
            platform=cell.platform, suite=cell.suite, success=False,
            kind=OutcomeKind.PROVISION_FAILED, detail=detail,
        )

    @classmethod
    def scrubbed(cls, cell: Cell, detail: str = "") -> CellOutcome:
        return cls(
            platform=cell.platform, suite=cell.suite, success=False,
            kind=OutcomeKind.SCRUBBED, detail=detail,
        )

    @property
    def kind_name(self) -> str:
        return self.kind.value

    def to_dict(self) -> dict[str, Any]:
        return {
            "platform": self.platform,
            "suite": self.suite,
            "success": self.success,
            "kind": self.kind_name,
            "detail": self.detail,
        }


@dataclass
class CellRun:
    """测试单元的一次运行，承载可变的状态与结果，Cell 本身保持不可变"""

    cell: Cell
    state: CellState = CellState.PENDING
    history: list[CellState] = field(default_factory=lambda: [CellState.PENDING])
    outcome: CellOutcome | None = None
    config_dir: str = ""

    def advance(self, state: CellState) -> None:
        self.state = state
        self.history.append(state)

    @property
    def reached_provisioning(self) -> bool:
        """是否已尝试创建实例（需要清理）"""
        return CellState.PROVISIONING in self.history

    @property
    def provisioned(self) -> bool:
        return CellState.PROVISIONED in self.history


@dataclass
class ResolvedConfig:
    """单元生效配置: 合并后的 run-list 与属性"""

    run_list: list[str] = field(default_factory=list)
    attributes: dict[str, Any] = field(default_factory=dict)


# =========================================================================
# 集群 / 执行选项
# =========================================================================


@dataclass
class ServerSettings:
    """共享收敛服务器配置

    enabled=True 时由框架自行拉起服务器实例；zero=True 表示内嵌零配置服务器。
    enabled=False 且 url 非空表示使用预先存在的外部服务器。
    """

    enabled: bool = False
    zero: bool = False
    url: str = ""
    template: str = ""
    port: int = 8889

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ServerSettings:
        data = data or {}
        return cls(
            enabled=bool(data.get("enabled", False)),
            zero=bool(data.get("zero", False)),
            url=str(data.get("url", "")),
            template=str(data.get("template", "")),
            port=int(data.get("port", 8889)),
        )

    @property
    def configured(self) -> bool:
        return self.enabled or bool(self.url)


@dataclass
class MatrixOptions:
    """矩阵执行选项（由 CLI 参数解析而来）"""

    platforms: list[str] = field(default_factory=list)
    suites: list[str] = field(default_factory=list)
    cluster: str = ""
    teardown: bool = True
    parallel: bool = False
