"""文件读写工具

集中管理 YAML 定义文件的读取、状态文件与节点配置的原子写入，
统一 encoding="utf-8"、空值保护、目录自动创建。
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

# 定义文件最大 10MB，超出视为异常输入
MAX_YAML_SIZE = 10 * 1024 * 1024


def atomic_write(path: Path, content: str) -> None:
    """原子写入：同目录临时文件写完后 rename，中途崩溃不会留下半截文件"""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=str(path.parent), suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.replace(tmp, str(path))
    except Exception:
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise


def load_yaml(path: str | Path) -> dict[str, Any]:
    """读取 YAML 文件

    文件不存在、为空或顶层不是字典时返回空字典。
    YAML 语法错误、读取失败照常抛出，由调用方转换为 ConfigError。
    """
    p = Path(path)
    if not p.exists():
        return {}

    size = p.stat().st_size
    if size > MAX_YAML_SIZE:
        raise ValueError(f"YAML 文件过大: {p} ({size} 字节)，超过限制 {MAX_YAML_SIZE} 字节")

    with open(p, encoding="utf-8") as f:
        result = yaml.safe_load(f)

    if result is None:
        return {}
    if not isinstance(result, dict):
        logger.warning("%s 顶层不是字典 (实际类型: %s)，按空处理", p, type(result).__name__)
        return {}
    return result


def save_yaml(path: str | Path, data: Any) -> None:
    """原子写入 YAML，保持键顺序"""
    content = yaml.safe_dump(
        data, default_flow_style=False, allow_unicode=True, sort_keys=False,
    )
    atomic_write(Path(path), content)


def write_json(path: str | Path, data: Any) -> Path:
    """原子写入 JSON，返回写入路径"""
    p = Path(path)
    atomic_write(p, json.dumps(data, indent=2, ensure_ascii=False))
    return p
