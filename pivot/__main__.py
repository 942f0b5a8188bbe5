"""Run the pivot command line tool with `python -m pivot`."""

from pivot.tool.pivot import main

main()
