"""Plotly figures for the insights dashboard.

Each function takes the plain dictionaries returned by the analytics
functions (:mod:`aggregation`, :mod:`trends`, :mod:`budgets`,
:mod:`inflation`, :mod:`deals`) and returns a
``plotly.graph_objects.Figure`` that Streamlit renders with
``st.plotly_chart``. Empty inputs produce an empty figure titled
"No data to display" rather than raising.
"""

from __future__ import annotations

from typing import Any, Dict, List, Sequence

import pandas as pd
import plotly.express as px
import plotly.graph_objects as go

from .budgets import TIER_ON_TRACK, TIER_OVER, TIER_WARNING

TIER_COLORS = {
    TIER_ON_TRACK: '#22c55e',
    TIER_WARNING: '#f59e0b',
    TIER_OVER: '#ef4444',
}


def _empty_figure(title: str = "No data to display") -> go.Figure:
    fig = go.Figure()
    fig.update_layout(title=title)
    return fig


def create_category_pie_chart(breakdown: Sequence[Dict[str, Any]], title: str | None = None) -> go.Figure:
    """Pie chart of spending per category.

    Parameters
    ----------
    breakdown : sequence of dict
        Rows as returned by :func:`aggregation.spending_by_category`, each
        with ``category``, ``amount`` and ``color``.
    title : str, optional
        Chart title.

    Returns
    -------
    plotly.graph_objects.Figure
        Donut-style pie chart coloured with each category's own colour.
    """
    if not breakdown:
        return _empty_figure()
    df = pd.DataFrame(breakdown)
    colors = {row['category']: row.get('color') or '#6b7280' for row in breakdown}
    fig = px.pie(df, names='category', values='amount', color='category',
                 color_discrete_map=colors, hole=0.4)
    fig.update_layout(title=title or "Spending by category")
    return fig


def create_category_bar_chart(breakdown: Sequence[Dict[str, Any]], title: str | None = None) -> go.Figure:
    """Horizontal bar chart of category totals, largest at the top."""
    if not breakdown:
        return _empty_figure()
    df = pd.DataFrame(breakdown).sort_values('amount')
    fig = px.bar(df, x='amount', y='category', orientation='h')
    fig.update_layout(
        title=title or "Spending by category",
        xaxis_title="Amount",
        yaxis_title="Category",
    )
    return fig


def create_monthly_trend_chart(trends: Sequence[Dict[str, Any]], title: str | None = None) -> go.Figure:
    """Bar chart of monthly totals from :func:`trends.monthly_trends`."""
    if not trends:
        return _empty_figure()
    df = pd.DataFrame(trends)
    fig = px.bar(df, x='month', y='total', hover_data=['count'])
    fig.update_layout(
        title=title or "Monthly spending",
        xaxis_title="Month",
        yaxis_title="Total",
    )
    return fig


def create_daily_spending_chart(daily: Sequence[Dict[str, Any]], title: str | None = None) -> go.Figure:
    if not daily:
        return _empty_figure()
    df = pd.DataFrame(daily)
    fig = px.bar(df, x='date', y='amount')
    fig.update_layout(title=title or "Daily spending", xaxis_title="Day", yaxis_title="Amount")
    return fig


def create_inflation_chart(
    history: Sequence[Dict[str, Any]],
    predictions: Sequence[float] = (),
    title: str | None = None,
) -> go.Figure:
    """Line chart of stored inflation rates with the forecast appended.

    Parameters
    ----------
    history : sequence of dict
        Snapshots as produced by ``InflationRecord.to_dict`` (any order).
    predictions : sequence of float
        Forecast rates for the months following the latest snapshot.
    title : str, optional
        Chart title.
    """
    if not history:
        return _empty_figure()
    df = pd.DataFrame(history)
    df['date'] = pd.to_datetime(df['last_updated'])
    df = df.sort_values('date')

    fig = go.Figure()
    fig.add_trace(go.Scatter(x=df['date'], y=df['current_rate'], mode='lines+markers', name='Observed'))
    if len(predictions):
        last = df['date'].iloc[-1]
        future = pd.date_range(last, periods=len(predictions) + 1, freq=pd.DateOffset(months=1))[1:]
        fig.add_trace(go.Scatter(
            x=[last, *future],
            y=[df['current_rate'].iloc[-1], *predictions],
            mode='lines+markers',
            name='Forecast',
            line=dict(dash='dash'),
        ))
    fig.update_layout(
        title=title or "Inflation rate",
        xaxis_title="Date",
        yaxis_title="Rate (%)",
    )
    return fig


def create_budget_usage_chart(categories: Sequence[Dict[str, Any]], title: str | None = None) -> go.Figure:
    """Budget vs. spent per allocation, bars coloured by tier."""
    if not categories:
        return _empty_figure()
    df = pd.DataFrame(categories)
    tiers: List[str] = list(df['tier']) if 'tier' in df else [TIER_ON_TRACK] * len(df)
    fig = go.Figure()
    fig.add_trace(go.Bar(x=df['category'], y=df['budget'], name='Budget', marker_color='#cbd5e1'))
    fig.add_trace(go.Bar(
        x=df['category'],
        y=df['spent'],
        name='Spent',
        marker_color=[TIER_COLORS.get(t, TIER_COLORS[TIER_ON_TRACK]) for t in tiers],
    ))
    fig.update_layout(
        title=title or "Budget usage",
        barmode='group',
        xaxis_title="Category",
        yaxis_title="Amount",
    )
    return fig


def create_deals_map(deals: Sequence[Dict[str, Any]], title: str | None = None) -> go.Figure:
    """Scatter map of deal locations, marker size by discount."""
    if not deals:
        return _empty_figure()
    df = pd.DataFrame([
        {
            'product': d['product'],
            'store': d['store'],
            'discount': d['discount'],
            'distance': d.get('distance'),
            'lat': d['location']['lat'],
            'lng': d['location']['lng'],
        }
        for d in deals
    ])
    fig = px.scatter_map(
        df,
        lat='lat',
        lon='lng',
        size='discount',
        color='store',
        hover_name='product',
        hover_data=['discount', 'distance'],
        zoom=11,
    )
    fig.update_layout(title=title or "Deals nearby", map_style='open-street-map')
    return fig
