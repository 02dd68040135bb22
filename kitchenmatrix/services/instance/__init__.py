"""实例管理

- runtime.py: InstanceRuntime 协议与 LXC 实现
- mappings.py: 逻辑实例名 → 运行时句柄的持久化映射
- controller.py: 幂等创建 / 收敛 / 执行 / 销毁门面
"""

from kitchenmatrix.services.instance.controller import InstanceController, InstanceHandle
from kitchenmatrix.services.instance.mappings import InstanceMappings
from kitchenmatrix.services.instance.runtime import InstanceRuntime, LxcRuntime

__all__ = [
    "InstanceController",
    "InstanceHandle",
    "InstanceMappings",
    "InstanceRuntime",
    "LxcRuntime",
]
