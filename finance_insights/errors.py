"""Typed error hierarchy for the analytics engine.

Every error carries a ``kind`` tag and a ``status_code`` so the transport
layer (not part of this package) can branch on the error class instead of
parsing messages.
"""

from __future__ import annotations


class FinanceInsightsError(Exception):
    """Base class for all domain errors raised by the engine."""

    kind = 'error'
    status_code = 500
    default_message = 'Unexpected engine error'

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {'kind': self.kind, 'message': self.message, 'status_code': self.status_code}


class InvalidInput(FinanceInsightsError, ValueError):
    kind = 'invalid_input'
    status_code = 400
    default_message = 'Invalid input'


class NotFound(FinanceInsightsError):
    kind = 'not_found'
    status_code = 404
    default_message = 'Resource not found'


class InvalidBudget(FinanceInsightsError):
    kind = 'invalid_budget'
    status_code = 422
    default_message = 'Budget amounts must be greater than zero'


class InsufficientData(FinanceInsightsError):
    kind = 'insufficient_data'
    status_code = 422
    default_message = 'At least two historical points are required for a forecast'


class NoActiveBudget(FinanceInsightsError):
    kind = 'no_active_budget'
    status_code = 404
    default_message = 'No active budget found'


class NoInflationData(FinanceInsightsError):
    kind = 'no_inflation_data'
    status_code = 404
    default_message = 'No inflation data available'


class UpstreamUnavailable(FinanceInsightsError):
    kind = 'upstream_unavailable'
    status_code = 503
    default_message = 'External data source unavailable'


__all__ = [
    'FinanceInsightsError',
    'InvalidInput',
    'NotFound',
    'InvalidBudget',
    'InsufficientData',
    'NoActiveBudget',
    'NoInflationData',
    'UpstreamUnavailable',
]
