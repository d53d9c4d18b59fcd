"""Allow ``python -m certflux``."""

from certflux.cli.main import main

main()
