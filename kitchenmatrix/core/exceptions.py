"""统一异常体系

所有业务异常继承 KitchenMatrixError。CLI 层捕获后转换为友好提示并以非零码退出。

区分两类失败:
  - 无法运行（InvalidPlatformError / ClusterInvalidError / ConfigError 等基础设施错误）
  - 运行了但有失败（KitchenTestFailed，只在全部单元跑完后抛出一次）
"""

from __future__ import annotations


class KitchenMatrixError(Exception):
    """框架基础异常"""

    code: str = "UNKNOWN"

    def __init__(self, message: str) -> None:
        super().__init__(message)


class ConfigError(KitchenMatrixError):
    """配置文件或平台/套件定义文件缺失、内容无效"""

    code = "CONFIG_ERROR"


class ValidationError(KitchenMatrixError):
    """输入数据校验失败"""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, details: list[str] | None = None) -> None:
        super().__init__(message)
        self.details = details or []


class ExecutionError(KitchenMatrixError):
    """外部命令执行失败"""

    code = "EXECUTION_ERROR"


class InvalidPlatformError(KitchenMatrixError):
    """请求的平台不在目录中"""

    code = "INVALID_PLATFORM"

    def __init__(self, platform: str, valid: list[str] | None = None) -> None:
        self.platform = platform
        self.valid = sorted(valid or [])
        super().__init__(
            f"平台不存在: {platform}（可用: {', '.join(self.valid) or '无'}）"
        )


class ClusterInvalidError(KitchenMatrixError):
    """请求的集群未定义"""

    code = "CLUSTER_INVALID"

    def __init__(self, cluster: str) -> None:
        self.cluster = cluster
        super().__init__(f"集群未定义: {cluster}")


class HostProvisionFailed(KitchenMatrixError):
    """单个测试单元装配失败"""

    code = "HOST_PROVISION_FAILED"

    def __init__(self, platform: str, suite: str, reason: str = "") -> None:
        self.platform = platform
        self.suite = suite
        msg = f"装配失败: {platform}[{suite}]"
        super().__init__(f"{msg}: {reason}" if reason else msg)


class KitchenTestFailed(KitchenMatrixError):
    """矩阵测试汇总失败，列出所有失败的套件"""

    code = "KITCHEN_TEST_FAILED"

    def __init__(self, failures: list[tuple[str, str]]) -> None:
        # (platform, suite) 对
        self.failures = list(failures)
        super().__init__(f"测试失败的套件: {', '.join(self.failed_suites)}")

    @property
    def failed_suites(self) -> list[str]:
        """失败套件名（已排序，同名套件在多个平台失败时保留重复）"""
        return sorted(suite for _, suite in self.failures)

    def failed_for(self, platform: str) -> list[str]:
        """指定平台下失败的套件名"""
        return sorted(suite for plat, suite in self.failures if plat == platform)
