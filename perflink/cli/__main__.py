"""Allow ``python -m perflink.cli`` execution."""

from perflink.cli.run import main

main()
