"""Reconcilers for the three tracked kinds.

Each one takes a snapshot of its resource, converges the resources it
owns and returns an ``UpdateControl`` for its own status.
"""

from decision_operator.reconcilers.admission import AdmissionError, AdmissionReconciler
from decision_operator.reconcilers.decision import DecisionReconciler, version_name
from decision_operator.reconcilers.version import VersionReconciler

__all__ = [
    "AdmissionError",
    "AdmissionReconciler",
    "DecisionReconciler",
    "VersionReconciler",
    "version_name",
]
