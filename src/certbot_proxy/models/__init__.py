"""Domain entities for certbot-proxy."""

from certbot_proxy.models.challenge import ChallengeRecord

__all__ = ["ChallengeRecord"]
