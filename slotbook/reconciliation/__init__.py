from slotbook.reconciliation.reconciler import (
    DetectedDrift,
    DriftKind,
    ReconciliationReport,
    Reconciler,
)

__all__ = ["Reconciler", "ReconciliationReport", "DetectedDrift", "DriftKind"]
