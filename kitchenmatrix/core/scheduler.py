"""测试单元调度器

顺序模式按给定顺序逐个执行；并行模式每个单元一个线程、不设上限（资源成本由调用方承担）。
每个任务返回自己的结果，全部 join 之后再按派发顺序归并，不共享可变状态。
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CellScheduler:
    """顺序 / 并行两种派发策略"""

    def __init__(self, parallel: bool = False) -> None:
        self.parallel = parallel

    def run_all(self, tasks: list[Callable[[], T]]) -> list[T]:
        """执行全部任务，返回结果与输入顺序一致"""
        if not tasks:
            return []
        if not self.parallel:
            return [task() for task in tasks]

        logger.info("并行派发 %d 个测试单元", len(tasks))
        with ThreadPoolExecutor(
            max_workers=len(tasks), thread_name_prefix="cell",
        ) as executor:
            futures = [executor.submit(task) for task in tasks]
            # 意外异常在 result() 处重新抛出，退出 with 时仍等待其余任务结束
            return [f.result() for f in futures]
