"""被测 cookbook 识别

不指定 cookbook 名时为 solo 模式: 以当前目录为 cookbook 根，名称依次取自
metadata.rb、metadata.json、目录名；指定名称时在 Config.cookbook_paths 中查找。
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path

from kitchenmatrix.core.exceptions import ConfigError

logger = logging.getLogger(__name__)

_METADATA_NAME_RE = re.compile(r"""^\s*name\s+['"]([^'"]+)['"]""", re.MULTILINE)


@dataclass(frozen=True)
class Subject:
    """被测 cookbook"""

    name: str
    directory: Path
    solo: bool = True

    def test_root(self, relative: str) -> Path:
        return self.directory / relative


def discover_name(directory: Path) -> str:
    """从 cookbook 元数据推断名称"""
    metadata_rb = directory / "metadata.rb"
    metadata_json = directory / "metadata.json"
    if metadata_rb.exists():
        m = _METADATA_NAME_RE.search(metadata_rb.read_text(encoding="utf-8"))
        return m.group(1) if m else directory.resolve().name
    if metadata_json.exists():
        try:
            data = json.loads(metadata_json.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ConfigError(f"metadata.json 解析失败: {e}") from e
        return str(data.get("name") or directory.resolve().name)
    raise ConfigError(f"无法识别 cookbook 名称，请在 cookbook 根目录执行: {directory}")


def resolve_subject(
    name: str | None,
    *,
    cwd: Path | None = None,
    cookbook_paths: list[str] | None = None,
) -> Subject:
    """确定被测 cookbook 及其目录"""
    cwd = cwd or Path.cwd()
    if not (name or "").strip():
        discovered = discover_name(cwd)
        logger.info("solo 模式: cookbook=%s (%s)", discovered, cwd)
        return Subject(name=discovered, directory=cwd, solo=True)

    for base in cookbook_paths or []:
        candidate = Path(base) / str(name)
        if candidate.is_dir():
            return Subject(name=str(name), directory=candidate, solo=False)
    # 在 cookbook 根目录下显式给出自身名称
    try:
        if discover_name(cwd) == name:
            return Subject(name=str(name), directory=cwd, solo=False)
    except ConfigError:
        pass
    raise ConfigError(f"在 cookbook_paths 中找不到 cookbook: {name}")
