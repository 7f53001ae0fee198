#!/usr/bin/env python3
"""
Lendbook Entry Point

Prints a dashboard snapshot of the configured database as JSON.
"""

import json
import sys
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from loan_servicing.config import get_config
from loan_servicing.exceptions import LendbookError
from loan_servicing.schemas import dashboard_to_dict
from loan_servicing.system import LendingSystem


if __name__ == "__main__":
    config = get_config()
    try:
        with LendingSystem(config, configure_logging=True) as system:
            print(json.dumps(dashboard_to_dict(system.dashboard()), indent=2))
    except LendbookError as e:
        print(f"Error reading {config.database_url}: {e}", file=sys.stderr)
        sys.exit(1)
