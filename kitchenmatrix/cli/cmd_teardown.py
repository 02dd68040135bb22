"""CLI — 实例清理命令"""

from __future__ import annotations

import click

from kitchenmatrix.cli import _parse_csv, _svc, handle_errors


def register(group: click.Group) -> None:
    group.add_command(teardown)


@click.command()
@click.argument("cookbook")
@click.option("--platform", "-p", "platforms", default="", help="只清理指定平台（逗号分隔）")
@click.option("--suite", default="", help="只清理指定套件")
@handle_errors
def teardown(cookbook: str, platforms: str, suite: str) -> None:
    """销毁 cookbook 的测试实例，不做测试"""
    from kitchenmatrix.services.orchestrator import MatrixOrchestrator

    orchestrator = MatrixOrchestrator(_svc(cookbook))
    destroyed = orchestrator.teardown(_parse_csv(platforms) or None, suite or None)
    if not destroyed:
        click.echo("没有需要销毁的实例。")
        return
    for name in destroyed:
        click.echo(f"已销毁: {name}")
