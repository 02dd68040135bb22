"""CLI — 实例状态命令"""

from __future__ import annotations

import click

from kitchenmatrix.cli import _svc, handle_errors


def register(group: click.Group) -> None:
    group.add_command(status)


@click.command()
@click.argument("name", required=False)
@handle_errors
def status(name: str | None) -> None:
    """列出已知实例及其状态（可按名称前缀过滤）"""
    from kitchenmatrix.services.orchestrator import MatrixOrchestrator

    rows = MatrixOrchestrator(_svc(need_subject=False)).status()
    if name:
        rows = [r for r in rows if r["name"].startswith(name)]
    if not rows:
        click.echo("没有已知实例。")
        return
    for r in rows:
        click.echo(f"  {r['name']:40s} {r['platform']:15s} {r['suite']:15s} {r['state']}")
