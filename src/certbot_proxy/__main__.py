"""Allow ``python -m certbot_proxy``."""

from certbot_proxy.cli.main import main

main()
