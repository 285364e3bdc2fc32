"""
Entry point for running mentor_rag as a module.

Allows running the CLI via:
    python -m mentor_rag search "körömvirág"
"""

import sys

from mentor_rag.cli import main

if __name__ == "__main__":
    sys.exit(main())
