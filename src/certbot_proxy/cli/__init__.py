"""Command-line interface for certbot-proxy."""
