"""
Variance analysis engine: ledger aggregation, budget reconciliation,
severity classification and rollups.
"""

from .engine import ControllerAnalysisEngine, AnalysisSession, AnalysisResult
from .variance_classifier import Alert, Severity

__all__ = ['ControllerAnalysisEngine', 'AnalysisSession', 'AnalysisResult', 'Alert', 'Severity']
