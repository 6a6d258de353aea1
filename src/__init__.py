"""
Controller Variance Engine

Aggregates ledger entries across three period baselines, reconciles them
against budget assumptions and ranks account/department variances into
severity-tiered alerts.
"""

__version__ = "1.0.0"
__author__ = "Your Organization"
