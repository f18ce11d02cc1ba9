"""Allow ``python -m technodog.cli`` execution."""

from technodog.cli.run import main

main()
