"""
Allow running schema_alias as a module:

    python -m schema_alias SCHEMA [--bind NAME=VALUE ...]

Delegates to schema_alias.cli:main().
"""
import sys
from .cli import main

sys.exit(main())
