"""machine-env 入口点。

支持: python -m machine_env
"""

import sys

from .app import main

if __name__ == "__main__":
    sys.exit(main())
