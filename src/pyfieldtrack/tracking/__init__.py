"""Tracking layer: scheduler, auto-resume reconciler and offline sweep job."""

from pyfieldtrack.tracking.reconciler import AutoResumeReconciler, ResumeChoice
from pyfieldtrack.tracking.scheduler import TrackingScheduler, TrackingState
from pyfieldtrack.tracking.sweep import OfflineSweep

__all__ = [
    "AutoResumeReconciler",
    "OfflineSweep",
    "ResumeChoice",
    "TrackingScheduler",
    "TrackingState",
]
