#!/usr/bin/env python3
"""
Cloud Spanner database & backup administration tool (REST v1)

Runs from a source checkout: adds the local ``src/`` directory to sys.path
and hands over to the console entry point in cli.py. For production use,
prefer installing the project and using the ``spanner-admin`` console script.

Examples:
  python3 main.py --project my-project --instance my-instance \\
      create-database test-db --statement "CREATE TABLE FOO (Id INT64) PRIMARY KEY (Id)"
  python3 main.py --project my-project --instance my-instance \\
      create-backup test-bck --database test-db --expire-days 7
  python3 main.py --project my-project --instance my-instance \\
      list-backups --filter "state:READY"
"""

import os
import sys

# Add src/ to path to import modules directly
REPO_ROOT = os.path.dirname(os.path.abspath(__file__))
SRC_PATH = os.path.join(REPO_ROOT, "src")
if SRC_PATH not in sys.path:
    sys.path.insert(0, SRC_PATH)

from cli import main

if __name__ == "__main__":
    sys.exit(main())
