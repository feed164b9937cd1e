"""Allow running stackforge as a module: python -m stackforge"""

from stackforge.cli import main

main()
