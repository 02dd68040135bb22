"""cookbook 依赖 vendoring

两种后端:
  - Berkshelf: cookbook 根目录下存在 Berksfile 时使用
  - Librarian: 其余情况；cookbook 没有 Cheffile 时在 store 中生成一个

prepare() 只把依赖拉到 <store>/cookbooks；upload() 额外上传到共享服务器（集群模式）。
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path

from kitchenmatrix.core.exceptions import ValidationError
from kitchenmatrix.core.subject import Subject
from kitchenmatrix.utils.fileio import atomic_write
from kitchenmatrix.utils.shell import CommandExecutor, run_cmd

logger = logging.getLogger(__name__)


class Vendorer(ABC):
    """vendoring 后端基类"""

    name: str = ""

    def __init__(
        self,
        vendor_dir: str | Path,
        *,
        timeout: float | None = None,
        executor: CommandExecutor | None = None,
    ) -> None:
        self.vendor_dir = Path(vendor_dir)
        self.timeout = timeout
        self.executor = executor

    @abstractmethod
    def prepare(self) -> Path:
        """拉取依赖到 vendor_dir，返回该目录"""

    @abstractmethod
    def upload(self, server_url: str) -> Path:
        """拉取依赖并上传到共享服务器"""

    def _run(self, argv: list[str], label: str, cwd: Path | None = None) -> None:
        run_cmd(
            argv, cwd=str(cwd) if cwd else None, timeout=self.timeout,
            label=label, executor=self.executor,
        )


class BerkshelfVendorer(Vendorer):
    name = "berkshelf"

    def __init__(
        self, berksfile: str | Path, vendor_dir: str | Path, *,
        timeout: float | None = None, executor: CommandExecutor | None = None,
    ) -> None:
        super().__init__(vendor_dir, timeout=timeout, executor=executor)
        self.berksfile = Path(berksfile)

    def prepare(self) -> Path:
        logger.info("通过 berks vendoring cookbook -> %s", self.vendor_dir)
        self.vendor_dir.parent.mkdir(parents=True, exist_ok=True)
        self._run(
            ["berks", "vendor", str(self.vendor_dir), "-b", str(self.berksfile)],
            "berks vendor",
        )
        return self.vendor_dir

    def upload(self, server_url: str) -> Path:
        self.prepare()
        logger.info("通过 berks 上传 cookbook -> %s", server_url)
        self._run(["berks", "upload", "-b", str(self.berksfile)], "berks upload")
        return self.vendor_dir


class LibrarianVendorer(Vendorer):
    name = "librarian"

    def __init__(
        self, cheffile: str | Path, vendor_dir: str | Path, *,
        timeout: float | None = None, executor: CommandExecutor | None = None,
    ) -> None:
        super().__init__(vendor_dir, timeout=timeout, executor=executor)
        self.cheffile = Path(cheffile)

    def prepare(self) -> Path:
        logger.info("通过 librarian vendoring cookbook -> %s", self.vendor_dir)
        self.vendor_dir.parent.mkdir(parents=True, exist_ok=True)
        self._run(
            ["librarian-chef", "install", "--path", str(self.vendor_dir)],
            "librarian-chef install", cwd=self.cheffile.parent,
        )
        return self.vendor_dir

    def upload(self, server_url: str) -> Path:
        if not server_url:
            raise ValidationError("上传 cookbook 需要服务器地址")
        self.prepare()
        logger.info("通过 knife 上传 cookbook -> %s", server_url)
        self._run(
            [
                "knife", "cookbook", "upload", "--all",
                "--cookbook-path", str(self.vendor_dir),
                "--server-url", server_url,
            ],
            "knife cookbook upload",
        )
        return self.vendor_dir


def custom_cheffile(subject: Subject, community_site: str) -> str:
    """为没有 Cheffile 的 cookbook 生成一个"""
    return "\n".join([
        f"site '{community_site}'",
        f"cookbook '{subject.name}', :path => '{subject.directory}'",
        "cookbook 'minitest-handler'",
    ]) + "\n"


def select_vendorer(
    subject: Subject,
    store_dir: str | Path,
    *,
    community_site: str = "https://supermarket.chef.io",
    timeout: float | None = None,
    executor: CommandExecutor | None = None,
) -> Vendorer:
    """按 cookbook 目录内容选择 vendoring 后端"""
    store = Path(store_dir)
    vendor_dir = store / "cookbooks"
    berksfile = subject.directory / "Berksfile"
    if berksfile.exists():
        return BerkshelfVendorer(berksfile, vendor_dir, timeout=timeout, executor=executor)

    cheffile = subject.directory / "Cheffile"
    if not cheffile.exists():
        cheffile = store / "Cheffile"
        logger.warning("cookbook 没有 Cheffile，生成默认 Cheffile: %s", cheffile)
        atomic_write(cheffile, custom_cheffile(subject, community_site))
    return LibrarianVendorer(cheffile, vendor_dir, timeout=timeout, executor=executor)
