"""kitchenmatrix 命令行接口

CLI 按命令拆分为子模块，每个模块注册自己的命令到 main group。
"""

from __future__ import annotations

import functools
import os
from pathlib import Path
from typing import Any, Callable

import click

from kitchenmatrix import __version__
from kitchenmatrix.core.config import DEFAULT_CONFIG_FILE, init_config
from kitchenmatrix.core.exceptions import KitchenMatrixError
from kitchenmatrix.core.subject import resolve_subject
from kitchenmatrix.services.container import ServiceContainer, set_container
from kitchenmatrix.utils.logger import setup_logging


def _svc(cookbook: str | None = None, *, need_subject: bool = True) -> ServiceContainer:
    """按 --config 与 cookbook 参数构造本次调用的服务容器"""
    ctx = click.get_current_context()
    config_path = (ctx.find_root().obj or {}).get("config", DEFAULT_CONFIG_FILE)
    config = init_config(config_path)
    subject = None
    if need_subject:
        subject = resolve_subject(cookbook, cwd=Path.cwd(), cookbook_paths=config.cookbook_paths)
    container = ServiceContainer(config, subject=subject)
    set_container(container)
    return container


def _parse_csv(value: str | None) -> list[str]:
    """解析 a,b,c 形式的列表参数"""
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def handle_errors(func: Callable[..., Any]) -> Callable[..., Any]:
    """KitchenMatrixError 转为 ClickException（退出码 1）"""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except KitchenMatrixError as e:
            raise click.ClickException(str(e)) from e

    return wrapper


@click.group()
@click.version_option(version=__version__)
@click.option("--config", "-c", "config_path", default=DEFAULT_CONFIG_FILE, help="配置文件路径")
@click.pass_context
def main(ctx: click.Context, config_path: str) -> None:
    """kitchenmatrix - cookbook 平台 × 套件矩阵测试"""
    ctx.ensure_object(dict)
    ctx.obj["config"] = config_path
    setup_logging(
        level=os.getenv("KITCHENMATRIX_LOG_LEVEL", "INFO"),
        json_output=os.getenv("KITCHENMATRIX_LOG_JSON", "") == "1",
    )


# 注册各子命令
from kitchenmatrix.cli.cmd_test import register as _reg_test  # noqa: E402
from kitchenmatrix.cli.cmd_teardown import register as _reg_teardown  # noqa: E402
from kitchenmatrix.cli.cmd_status import register as _reg_status  # noqa: E402

_reg_test(main)
_reg_teardown(main)
_reg_status(main)
