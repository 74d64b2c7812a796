"""Process-level HTTP servers for certbot-proxy."""
