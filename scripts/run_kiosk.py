#!/usr/bin/env python3
"""Garment QC kiosk console runner.

Usage:
    python scripts/run_kiosk.py scripts/user_config.py reports
    python scripts/run_kiosk.py scripts/user_config.py calibrate --apply
    python scripts/run_kiosk.py scripts/user_config.py measure --save --garment-ref PO-1182

Note: User config in scripts/user_config.py, expert defaults in garmentqc.schemas.param
"""

import sys
from pathlib import Path

# Add src to path
project_root = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(project_root / "src"))

from garmentqc.cli.run_kiosk import main


if __name__ == "__main__":
    sys.exit(main())
