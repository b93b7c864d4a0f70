"""release-attest CLI entry point: python -m release_attest"""

from __future__ import annotations

import sys

from release_attest.cli import main

if __name__ == "__main__":
    sys.exit(main())
