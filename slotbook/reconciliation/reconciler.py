"""
Availability drift detection and repair.

Booking and release are multi-step sequences over a store without
cross-record transactions, so appointments and slot flags can disagree
after a crash, a compensation failure, or a stale booking. The reconciler
scans for four drift patterns, each with severity and evidence, and
repairs the ones that have an unambiguous fix.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Optional

from slotbook.config import settings
from slotbook.errors import RecordNotFoundError
from slotbook.schemas.booking_schema import Appointment, AppointmentStatus, Tier
from slotbook.store.base import AvailabilityStore
from slotbook.utils import today_iso

logger = logging.getLogger(__name__)


class DriftKind(str, Enum):
    """Categorized disagreements between appointments and slot flags."""

    ORPHAN_CLAIM = "orphan_claim"
    STALE_APPOINTMENT = "stale_appointment"
    DANGLING_RELEASE = "dangling_release"
    TIER_OVERLAP = "tier_overlap"


REPAIRABLE = frozenset({DriftKind.ORPHAN_CLAIM, DriftKind.DANGLING_RELEASE, DriftKind.TIER_OVERLAP})


@dataclass
class DetectedDrift:
    """A single detected drift with evidence."""

    kind: DriftKind
    severity: str  # "low", "medium", "high"
    evidence: str
    appointment_id: Optional[str] = None
    tier: Optional[Tier] = None
    slot_id: Optional[str] = None
    recommendation: str = ""


@dataclass
class ReconciliationReport:
    """Result of one reconciliation scan."""

    drifts: list[DetectedDrift] = field(default_factory=list)
    scanned_appointments: int = 0
    scanned_dates: int = 0

    @property
    def has_drift(self) -> bool:
        return bool(self.drifts)

    def of_kind(self, kind: DriftKind) -> list[DetectedDrift]:
        return [d for d in self.drifts if d.kind == kind]


class Reconciler:
    """Detects and repairs drift between appointments and slot flags."""

    def __init__(self, store: AvailabilityStore, batch_size: Optional[int] = None) -> None:
        self._store = store
        self._batch_size = (
            settings.reservation.reconcile_batch_size if batch_size is None else batch_size
        )
        if self._batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {self._batch_size}")

    def scan(self, today: Optional[date] = None) -> ReconciliationReport:
        """Run all detectors over appointments and dates from today on."""
        cutoff = today_iso(today)
        appointments = self._load_appointments(cutoff)
        records = [r for r in self._store.list_date_records() if r.date >= cutoff]
        report = ReconciliationReport(
            scanned_appointments=len(appointments), scanned_dates=len(records)
        )

        report.drifts.extend(self._detect_claim_drift(appointments))
        report.drifts.extend(self._detect_tier_overlap([r.id for r in records]))

        if report.drifts:
            logger.info("Detected %d drift(s) across %d appointment(s)",
                        len(report.drifts), len(appointments))
        return report

    def _load_appointments(self, cutoff: str) -> list[Appointment]:
        """Page through every appointment dated on or after ``cutoff``."""
        appointments: list[Appointment] = []
        while True:
            page = self._store.list_appointments(
                min_date=cutoff, limit=self._batch_size, offset=len(appointments)
            )
            appointments.extend(page)
            if len(page) < self._batch_size:
                return appointments

    def repair(self, report: ReconciliationReport) -> list[DetectedDrift]:
        """Fix every repairable drift in the report. Returns the fixed ones."""
        repaired = []
        for drift in report.drifts:
            if drift.kind not in REPAIRABLE or drift.slot_id is None:
                continue
            try:
                if self._repair_one(drift):
                    repaired.append(drift)
            except RecordNotFoundError:
                logger.warning("Slot %s vanished before repair", drift.slot_id)
        logger.info("Repaired %d of %d drift(s)", len(repaired), len(report.drifts))
        return repaired

    # ------------------------------------------------------------------ #
    # Detectors
    # ------------------------------------------------------------------ #

    def _detect_claim_drift(self, appointments: list[Appointment]) -> list[DetectedDrift]:
        drifts: list[DetectedDrift] = []
        held = {
            a.claimed_slot_id for a in appointments if a.is_active and a.claimed_slot_id
        }

        for appt in appointments:
            if appt.is_active and appt.claimed_slot_id is None:
                drifts.append(DetectedDrift(
                    kind=DriftKind.STALE_APPOINTMENT,
                    severity="medium",
                    evidence=(
                        f"{appt.id} ({appt.service_id} {appt.date} {appt.time}) "
                        "holds no slot row"
                    ),
                    appointment_id=appt.id,
                    recommendation="Confirm the booking with the client or cancel it.",
                ))
                continue

            if appt.claimed_tier is None or appt.claimed_slot_id is None:
                continue
            flag = self._slot_flag(appt.claimed_tier, appt.claimed_slot_id)
            if flag is None:
                continue

            if appt.is_active and flag:
                drifts.append(DetectedDrift(
                    kind=DriftKind.ORPHAN_CLAIM,
                    severity="high",
                    evidence=f"{appt.id} is active but slot {appt.claimed_slot_id} is open",
                    appointment_id=appt.id,
                    tier=appt.claimed_tier,
                    slot_id=appt.claimed_slot_id,
                    recommendation="Mark the slot unavailable.",
                ))
            elif (
                appt.status == AppointmentStatus.CANCELLED
                and appt.claimed_tier == Tier.GENERAL
                and not flag
                and appt.claimed_slot_id not in held
            ):
                drifts.append(DetectedDrift(
                    kind=DriftKind.DANGLING_RELEASE,
                    severity="low",
                    evidence=(
                        f"{appt.id} is cancelled but general slot "
                        f"{appt.claimed_slot_id} is still closed"
                    ),
                    appointment_id=appt.id,
                    tier=Tier.GENERAL,
                    slot_id=appt.claimed_slot_id,
                    recommendation="Reopen the slot.",
                ))
        return drifts

    def _detect_tier_overlap(self, date_ids: list[str]) -> list[DetectedDrift]:
        drifts: list[DetectedDrift] = []
        for date_id in date_ids:
            claimed = {s.time for s in self._store.list_service_slots(date_id=date_id)}
            for general in self._store.list_general_slots(date_id):
                if general.time in claimed:
                    drifts.append(DetectedDrift(
                        kind=DriftKind.TIER_OVERLAP,
                        severity="medium" if general.is_available else "high",
                        evidence=(
                            f"general slot {general.id} at {general.time} shadows "
                            f"a service-specific time on {date_id}"
                        ),
                        tier=Tier.GENERAL,
                        slot_id=general.id,
                        recommendation="Delete the general slot.",
                    ))
        return drifts

    # ------------------------------------------------------------------ #
    # Repair
    # ------------------------------------------------------------------ #

    def _repair_one(self, drift: DetectedDrift) -> bool:
        if drift.kind == DriftKind.ORPHAN_CLAIM:
            return self._set_flag(drift.tier, drift.slot_id, False, expected=True)
        if drift.kind == DriftKind.DANGLING_RELEASE:
            return self._set_flag(Tier.GENERAL, drift.slot_id, True, expected=False)
        if drift.kind == DriftKind.TIER_OVERLAP:
            general = self._store.get_general_slot(drift.slot_id)
            if general is None or not general.is_available:
                # A closed general slot may back an appointment; leave it to an operator.
                return False
            self._store.delete_general_slot(general.id)
            return True
        return False

    def _set_flag(self, tier: Optional[Tier], slot_id: str, value: bool, expected: bool) -> bool:
        if tier == Tier.SERVICE_SPECIFIC:
            return self._store.set_service_slot_available(slot_id, value, expected=expected)
        return self._store.set_general_slot_available(slot_id, value, expected=expected)

    def _slot_flag(self, tier: Tier, slot_id: str) -> Optional[bool]:
        if tier == Tier.SERVICE_SPECIFIC:
            slot = self._store.get_service_slot(slot_id)
        else:
            slot = self._store.get_general_slot(slot_id)
        return slot.is_available if slot else None
