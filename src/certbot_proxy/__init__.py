"""certbot-proxy: ACME http-01 challenge responder for shared proxy hosts."""

__version__ = "1.0.0"
