"""Configuration subsystem for certbot-proxy.

Public API::

    from certbot_proxy.config import CertbotProxyConfig

    config = CertbotProxyConfig(config_file="config.yaml")
    port   = config.settings.server.port    # typed access
    custom = config.get("upload.path")      # dynamic dot-path
"""

from certbot_proxy.config.proxy_config import (
    CertbotProxyConfig,
    ConfigValidationError,
)
from certbot_proxy.config.settings import (
    AdminSettings,
    CertbotProxySettings,
    ForwardingSettings,
    LoggingSettings,
    RegistrySettings,
    ServerSettings,
    UploadSettings,
)

__all__ = [
    "AdminSettings",
    # Core
    "CertbotProxyConfig",
    # Root
    "CertbotProxySettings",
    "ConfigValidationError",
    # Sections
    "ForwardingSettings",
    "LoggingSettings",
    "RegistrySettings",
    "ServerSettings",
    "UploadSettings",
]
