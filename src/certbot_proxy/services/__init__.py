"""Service layer for certbot-proxy."""

from certbot_proxy.services.upload import StoredUpload, UploadService

__all__ = ["StoredUpload", "UploadService"]
