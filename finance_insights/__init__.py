"""Top-level package for Finance Insights.

Analytics and forecasting over a user's expenses, budgets, inflation
snapshots and store deals. The primary modules are:

* ``aggregation``: spending grouped by category, day or month
* ``budgets``: budget status, tiers and alerts
* ``trends``: monthly trends and least-squares forecasts
* ``inflation``: inflation history, forecasts and budget impact
* ``deals``: nearby and per-category deals, saved deals
* ``analytics``: dashboard and monthly summaries
* ``tips``: personalised savings tips
* ``jobs``: scheduled refresh jobs
* ``visualization``: Plotly figures
* ``dashboard``: a Streamlit app that ties everything together

Every operation takes a :class:`~finance_insights.db.FinanceStore` as its
first argument. To run the dashboard:

```bash
streamlit run finance_insights/dashboard.py
```
"""

# ``dashboard`` is not imported here so that importing the engine does
# not pull in Streamlit.

from . import aggregation  # noqa: F401
from . import analytics  # noqa: F401
from . import budgets  # noqa: F401
from . import deals  # noqa: F401
from . import inflation  # noqa: F401
from . import jobs  # noqa: F401
from . import tips  # noqa: F401
from . import trends  # noqa: F401
from .db import FinanceStore  # noqa: F401
from .errors import FinanceInsightsError  # noqa: F401

__version__ = "0.1.0"

__all__ = [
    "aggregation",
    "analytics",
    "budgets",
    "deals",
    "inflation",
    "jobs",
    "tips",
    "trends",
    "FinanceStore",
    "FinanceInsightsError",
]
