"""Entry point for `python -m alert_governance`."""

import sys

from alert_governance.cli import main

if __name__ == "__main__":
    sys.exit(main())
