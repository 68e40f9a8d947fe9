#!/usr/bin/env python3
"""Direct launcher for the Finance Insights dashboard.

Creates the data directory and schema if needed, then starts Streamlit
on ``finance_insights/dashboard.py``.
"""

import subprocess
import sys
from pathlib import Path

project_root = Path(__file__).parent.resolve()
sys.path.insert(0, str(project_root))

from finance_insights.config import ensure_data_directories  # noqa: E402
from finance_insights.db import FinanceStore  # noqa: E402

if __name__ == "__main__":
    ensure_data_directories()
    FinanceStore().init_db()
    subprocess.run([
        sys.executable, "-m", "streamlit", "run",
        str(project_root / "finance_insights" / "dashboard.py"),
        *sys.argv[1:],
    ])
