"""集群模式共享收敛服务器

enabled=True 时框架自行拉起一个服务器实例（zero=True 为内嵌零配置服务器），
否则使用 ServerSettings.url 指向的外部服务器。整个编排过程中只启动一次、销毁一次。
"""

from __future__ import annotations

import logging

from kitchenmatrix.core.exceptions import ConfigError, HostProvisionFailed
from kitchenmatrix.core.models import ServerSettings, instance_name_for
from kitchenmatrix.services.instance.controller import InstanceController

logger = logging.getLogger(__name__)

DEFAULT_SERVER_TEMPLATE = "ubuntu_1204"


class ConvergenceServer:
    """共享收敛服务器会话"""

    def __init__(
        self,
        controller: InstanceController,
        settings: ServerSettings,
        *,
        subject: str = "",
    ) -> None:
        self.controller = controller
        self.settings = settings
        self.name = instance_name_for(subject, "server")
        self.url = settings.url
        self.uploaded: set[str] = set()
        self._owned = False

    @property
    def embedded(self) -> bool:
        return self.settings.enabled and self.settings.zero

    def start(self) -> str:
        """启动或复用服务器，返回服务器地址"""
        if not self.settings.configured:
            raise ConfigError("集群模式需要 local_server 配置（enabled 或 url）")
        if not self.settings.enabled:
            logger.info("使用外部收敛服务器: %s", self.url)
            return self.url

        template = self.settings.template or DEFAULT_SERVER_TEMPLATE
        self.controller.create(self.name, template, platform="server")
        self._owned = True
        if self.settings.zero:
            command = f"chef-zero -H 0.0.0.0 -p {self.settings.port} -d"
        else:
            command = "chef-server-ctl reconfigure"
        if not self.controller.run_command(self.name, command):
            raise HostProvisionFailed("server", self.name, "收敛服务器启动失败")
        port = self.settings.port if self.settings.zero else 443
        scheme = "http" if self.settings.zero else "https"
        self.url = f"{scheme}://{self.controller.address(self.name)}:{port}"
        logger.info("收敛服务器已就绪: %s (%s)", self.url, "zero" if self.settings.zero else "full")
        return self.url

    def mark_uploaded(self, artifact: str) -> None:
        self.uploaded.add(artifact)

    def destroy(self) -> None:
        """销毁框架拉起的服务器；外部服务器不动"""
        if not self._owned:
            return
        self.controller.destroy(self.name)
        self._owned = False
        logger.info("收敛服务器已销毁: %s", self.name)


def resolve_settings(raw: dict | None, *, solo: bool) -> ServerSettings:
    """solo 模式下未配置服务器时默认拉起内嵌零配置服务器"""
    settings = ServerSettings.from_dict(raw)
    if solo and not settings.configured:
        settings = ServerSettings(enabled=True, zero=True, port=settings.port, template=settings.template)
    return settings
