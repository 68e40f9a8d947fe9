"""Streamlit app for the Finance Insights engine.

The page reads everything through :class:`finance_insights.db.FinanceStore`
and the analytics functions; it never touches SQL directly. Sidebar
controls select the user, the location used for deal search and the
history/forecast horizons.

To run the dashboard from the command line::

    streamlit run finance_insights/dashboard.py

or use ``run_dashboard.py`` in the project root.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any, Callable, Optional

import streamlit as st

# Support both ``streamlit run finance_insights/dashboard.py`` (no package
# context) and imports as part of the package.
if __package__:
    from . import analytics, budgets, deals, inflation, tips, trends
    from . import visualization as viz
    from .config import DB_PATH, DEFAULT_RADIUS_KM, MAX_RADIUS_KM
    from .db import FinanceStore
    from .errors import FinanceInsightsError
    from .logging_config import configure_logging
else:
    CURRENT_DIR = os.path.dirname(os.path.abspath(__file__))
    PARENT_DIR = os.path.dirname(CURRENT_DIR)
    if PARENT_DIR not in sys.path:
        sys.path.insert(0, PARENT_DIR)
    from finance_insights import analytics, budgets, deals, inflation, tips, trends  # type: ignore
    from finance_insights import visualization as viz  # type: ignore
    from finance_insights.config import DB_PATH, DEFAULT_RADIUS_KM, MAX_RADIUS_KM  # type: ignore
    from finance_insights.db import FinanceStore  # type: ignore
    from finance_insights.errors import FinanceInsightsError  # type: ignore
    from finance_insights.logging_config import configure_logging  # type: ignore

logger = logging.getLogger(__name__)

# Istanbul city centre
DEFAULT_LOCATION = (41.0082, 28.9784)

SESSION_DEFAULTS = {
    'owner_id': 'demo-user',
    'lat': DEFAULT_LOCATION[0],
    'lng': DEFAULT_LOCATION[1],
    'radius_km': DEFAULT_RADIUS_KM,
    'trend_months': 6,
    'forecast_months': 3,
}

SEVERITY_RENDERERS = {'critical': 'error', 'warning': 'warning', 'info': 'info'}


def _ensure_state() -> None:
    for key, value in SESSION_DEFAULTS.items():
        if key not in st.session_state:
            st.session_state[key] = value


def get_store(db_path: Optional[str] = None) -> FinanceStore:
    store = FinanceStore(db_path or DB_PATH)
    store.init_db()
    return store


def safe_call(func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    """Call an engine function, showing domain errors as a warning instead of a traceback."""
    try:
        return func(*args, **kwargs)
    except FinanceInsightsError as exc:
        logger.info("%s: %s", func.__name__, exc.message)
        st.warning(exc.message)
        return None


def render_alerts(alerts) -> None:
    for alert in alerts or []:
        show = getattr(st, SEVERITY_RENDERERS.get(alert['severity'], 'info'))
        name = alert['budget_name'] or f"Budget #{alert['budget_id']}"
        show(f"{name}: {alert['percentage']:.0f}% used ({alert['spent']:,.2f} of {alert['total_amount']:,.2f})")


def render_overview(store: FinanceStore, owner_id: str) -> None:
    summary = safe_call(analytics.dashboard_summary, store, owner_id)
    if summary is None:
        return
    col1, col2, col3 = st.columns(3)
    col1.metric("Spent this month", f"{summary['total_expenses']:,.2f}")
    col2.metric("Active budget", f"{summary['total_budget']:,.2f}")
    col3.metric("Budget used", f"{summary['budget_usage']}%")

    render_alerts(safe_call(budgets.budget_alerts, store, owner_id))

    left, right = st.columns(2)
    left.plotly_chart(viz.create_category_pie_chart(summary['category_breakdown']), use_container_width=True)
    status = safe_call(budgets.budget_summary, store, owner_id)
    if status and status['budget_id'] is not None:
        current = safe_call(budgets.budget_status, store, status['budget_id'], owner_id)
        if current is not None:
            right.plotly_chart(
                viz.create_budget_usage_chart([c.to_dict() for c in current.categories]),
                use_container_width=True,
            )

    if summary['recent_expenses']:
        st.subheader("Recent expenses")
        st.dataframe(summary['recent_expenses'], use_container_width=True)


def render_trends(store: FinanceStore, owner_id: str, months: int) -> None:
    data = safe_call(trends.monthly_trends, store, owner_id, months)
    if data is not None:
        st.plotly_chart(viz.create_monthly_trend_chart(data), use_container_width=True)


def render_inflation(store: FinanceStore, owner_id: str, forecast_months: int) -> None:
    history = safe_call(inflation.inflation_history, store, 24)
    if not history:
        st.info("No inflation data stored yet.")
        return
    forecast = safe_call(inflation.inflation_forecast, store, forecast_months)
    predictions = forecast['predictions'] if forecast else []
    st.plotly_chart(
        viz.create_inflation_chart([r.to_dict() for r in history], predictions),
        use_container_width=True,
    )
    impact = safe_call(inflation.budget_impact, store, owner_id)
    if impact:
        st.metric("Inflation impact on budget", f"{impact['total_impact']:,.2f}")
        st.dataframe(impact['category_impacts'], use_container_width=True)


def render_deals(store: FinanceStore, lat: float, lng: float, radius_km: float) -> None:
    nearby = safe_call(deals.nearby_deals, store, (lat, lng), radius_km)
    if nearby is None:
        return
    if nearby.fallback:
        st.caption("No deals nearby; showing the closest ones instead.")
    rows = nearby.to_dict()['deals']
    st.plotly_chart(viz.create_deals_map(rows), use_container_width=True)
    if rows:
        st.dataframe(rows, use_container_width=True)


def render_tips(store: FinanceStore, owner_id: str) -> None:
    for tip in safe_call(tips.personalized_tips, store, owner_id) or []:
        st.markdown(f"{tip['icon']} **{tip['title']}** ({tip['priority']})  \n{tip['description']}")


def main() -> None:
    """Entry point for the Streamlit app."""
    configure_logging()
    st.set_page_config(page_title="Finance Insights", layout="wide", initial_sidebar_state="expanded")
    _ensure_state()
    st.title("Finance Insights")

    st.sidebar.header("Settings")
    owner_id = st.sidebar.text_input("User", key='owner_id')
    trend_months = st.sidebar.slider("Trend months", 1, 24, key='trend_months')
    forecast_months = st.sidebar.slider("Forecast months", 1, 12, key='forecast_months')
    st.sidebar.subheader("Location")
    lat = st.sidebar.number_input("Latitude", -90.0, 90.0, key='lat', format="%.4f")
    lng = st.sidebar.number_input("Longitude", -180.0, 180.0, key='lng', format="%.4f")
    radius = st.sidebar.slider("Radius (km)", 0.5, float(MAX_RADIUS_KM), key='radius_km', step=0.5)

    store = get_store()
    overview_tab, trend_tab, inflation_tab, deals_tab, tips_tab = st.tabs(
        ["Overview", "Trends", "Inflation", "Deals", "Tips"]
    )
    with overview_tab:
        render_overview(store, owner_id)
    with trend_tab:
        render_trends(store, owner_id, trend_months)
    with inflation_tab:
        render_inflation(store, owner_id, forecast_months)
    with deals_tab:
        render_deals(store, lat, lng, radius)
    with tips_tab:
        render_tips(store, owner_id)


if __name__ == "__main__":
    main()
