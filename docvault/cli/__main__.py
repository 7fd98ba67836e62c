"""Allow ``python -m docvault.cli`` execution."""

import sys

from docvault.cli.main import main

sys.exit(main())
