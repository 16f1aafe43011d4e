"""Allow ``python -m bitbucket_backup``."""

from .main import main

main()
