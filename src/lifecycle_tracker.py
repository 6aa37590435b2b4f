import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from business_models import Member
from edi_converter import extract_834_members
from edi_models import EdiModel, Transaction

logger = logging.getLogger(__name__)

EventType = Literal['enrollment', 'change', 'termination', 'reinstatement', 'cobra_election']
MemberStatus = Literal['active', 'terminated', 'cobra', 'pending', 'suspended']
AlertType = Literal['duplicate_enrollment', 'missing_termination', 'gap_in_coverage', 'data_inconsistency']
AlertSeverity = Literal['low', 'medium', 'high', 'critical']

MAINTENANCE_EVENT_TYPES: Dict[str, EventType] = {
    '021': 'enrollment',
    '001': 'change',
    '024': 'termination',
    '025': 'reinstatement',
}
# Maintenance type 030 (audit or compare) is resolved through the reason code.
AUDIT_MAINTENANCE_TYPE = '030'
AUDIT_REASON_EVENT_TYPES: Dict[str, EventType] = {
    'AI': 'enrollment',
    'XN': 'termination',
    'EC': 'cobra_election',
}
EVENT_STATUSES: Dict[str, MemberStatus] = {
    'termination': 'terminated',
    'cobra_election': 'cobra',
}

class LifecycleSettings(BaseModel):
    duplicate_threshold: float = Field(0.85, ge=0.0, le=1.0, description="Name similarity above which two members match.")
    duplicate_window_days: int = Field(30, ge=0)
    missing_termination_days: int = Field(365, ge=0)
    coverage_gap_days: int = Field(1, ge=0, description="Gaps longer than this many days raise an alert.")
    long_gap_days: int = Field(31, ge=0, description="Gaps longer than this many days are high severity.")

class LifecycleEvent(EdiModel):
    id: str
    event_type: EventType
    event_date: datetime
    effective_date: datetime
    maintenance_type: str
    maintenance_reason: str
    source_transaction: str
    details: Dict[str, Any] = Field(default_factory=dict)

class CoverageRecord(EdiModel):
    id: str
    insurance_line_code: str = ""
    plan_code: str = ""
    coverage_level: str = ""
    effective_date: datetime
    status: Literal['active', 'terminated', 'suspended'] = 'active'

class MemberAlert(EdiModel):
    id: str
    type: AlertType
    severity: AlertSeverity
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)
    date_created: datetime
    resolved: bool = False

class MemberRecord(EdiModel):
    id: str
    member_id: str
    first_name: str = ""
    last_name: str = ""
    ssn: Optional[str] = None
    date_of_birth: str = ""
    gender: str = ""
    payer_id: str = "unknown"
    current_status: MemberStatus = 'active'
    lifecycle: List[LifecycleEvent] = Field(default_factory=list)
    health_coverage: List[CoverageRecord] = Field(default_factory=list)
    last_updated: datetime
    alerts: List[MemberAlert] = Field(default_factory=list)

class ProcessingAlert(EdiModel):
    type: str
    severity: str
    message: str
    member_id: str

class ProcessingResult(EdiModel):
    processed: int = 0
    errors: int = 0
    warnings: int = 0
    alerts: List[ProcessingAlert] = Field(default_factory=list)
    affected_members: List[str] = Field(default_factory=list)

class LifecycleStats(EdiModel):
    total_members: int
    active_members: int
    total_enrollments: int
    total_terminations: int
    total_changes: int
    members_with_alerts: int
    alerts_by_type: Dict[str, int] = Field(default_factory=dict)

# --- Helpers ---
def _generate_id() -> str:
    return str(uuid.uuid4())

def levenshtein_distance(first: str, second: str) -> int:
    previous = list(range(len(second) + 1))
    for i, first_char in enumerate(first, start=1):
        current = [i]
        for j, second_char in enumerate(second, start=1):
            cost = 0 if first_char == second_char else 1
            current.append(min(previous[j - 1] + cost, previous[j] + 1, current[j - 1] + 1))
        previous = current
    return previous[-1]

def similarity(first: str, second: str) -> float:
    """Levenshtein ratio: 1.0 for identical strings, 0.0 for nothing in common."""
    longer = max(len(first), len(second))
    if longer == 0:
        return 1.0
    return (longer - levenshtein_distance(first, second)) / longer

def format_date(value: str) -> str:
    """CCYYMMDD to ISO CCYY-MM-DD; other shapes are returned unchanged."""
    if len(value) == 8 and value.isdigit():
        return f"{value[0:4]}-{value[4:6]}-{value[6:8]}"
    return value

def parse_date(value: str) -> Optional[datetime]:
    if len(value) == 8 and value.isdigit():
        try:
            return datetime.strptime(value, "%Y%m%d").replace(tzinfo=timezone.utc)
        except ValueError:
            logger.warning(f"Invalid CCYYMMDD date '{value}'.")
    return None

def determine_event_type(maintenance_type: str, maintenance_reason: str) -> EventType:
    if maintenance_type == AUDIT_MAINTENANCE_TYPE:
        return AUDIT_REASON_EVENT_TYPES.get(maintenance_reason, 'change')
    return MAINTENANCE_EVENT_TYPES.get(maintenance_type, 'change')

def determine_status(event_type: EventType) -> MemberStatus:
    return EVENT_STATUSES.get(event_type, 'active')


class MemberLifecycleTracker:
    """
    Keeps member records across processed 834 transactions and raises alerts for
    suspicious lifecycles. State lives on the instance only.
    """

    def __init__(self, settings: Optional[LifecycleSettings] = None, clock: Optional[Callable[[], datetime]] = None):
        self.settings = settings or LifecycleSettings()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._members: Dict[str, MemberRecord] = {}

    def process_834_transaction(self, transaction: Transaction) -> ProcessingResult:
        members = extract_834_members(transaction)
        result = ProcessingResult()
        for member in members:
            self._process_member(member, transaction, result)

        logger.info(
            f"Lifecycle processing of transaction {transaction.metadata.control_number or 'n/a'}: "
            f"processed={result.processed}, warnings={result.warnings}, alerts={len(result.alerts)}"
        )
        return result

    def _process_member(self, member: Member, transaction: Transaction, result: ProcessingResult):
        now = self._clock()
        name = member.name
        member_id = (name.id if name and name.id else member.member_id) or _generate_id()
        first_name = name.first_name if name else ""
        last_name = name.last_name if name else ""
        date_of_birth = format_date(member.demographics.birth_date)
        effective_date = parse_date(member.effective_date) or now

        event_type = determine_event_type(member.maintenance_type_code, member.maintenance_reason_code)
        event = LifecycleEvent(
            id=_generate_id(),
            event_type=event_type,
            event_date=now,
            effective_date=effective_date,
            maintenance_type=member.maintenance_type_code,
            maintenance_reason=member.maintenance_reason_code,
            source_transaction=transaction.metadata.control_number,
        )
        coverage = [
            CoverageRecord(
                id=_generate_id(),
                insurance_line_code=hd.insurance_line_code,
                plan_code=hd.plan_coverage_description,
                coverage_level=hd.coverage_level_code,
                effective_date=effective_date,
            )
            for hd in member.health_coverage
        ]
        ssn = next((ref.value for ref in member.references if ref.qualifier == '0F'), None)

        existing = self._find_member(member_id, first_name, last_name, date_of_birth)
        if existing is not None:
            self._check_data_consistency(existing, first_name, last_name, date_of_birth, result)
            existing.lifecycle.append(event)
            existing.health_coverage.extend(coverage)
            existing.current_status = determine_status(event_type)
            existing.last_updated = now
            record = existing
            logger.debug(f"Updated member {record.member_id} with {event_type} event.")
        else:
            record = MemberRecord(
                id=_generate_id(),
                member_id=member_id,
                first_name=first_name,
                last_name=last_name,
                ssn=ssn,
                date_of_birth=date_of_birth,
                gender=member.demographics.gender_code,
                payer_id=transaction.payer.id if transaction.payer else 'unknown',
                current_status=determine_status(event_type),
                lifecycle=[event],
                health_coverage=coverage,
                last_updated=now,
            )
            self._members[record.id] = record
            logger.debug(f"Created member {record.member_id} with {event_type} event.")

        result.processed += 1
        result.affected_members.append(record.id)
        self._run_quality_checks(record, result)

    def _find_member(self, member_id: str, first_name: str, last_name: str, date_of_birth: str) -> Optional[MemberRecord]:
        for member in self._members.values():
            if member.member_id == member_id:
                return member

        if not (first_name and last_name and date_of_birth):
            return None
        threshold = self.settings.duplicate_threshold
        for member in self._members.values():
            if (similarity(member.first_name, first_name) > threshold
                    and similarity(member.last_name, last_name) > threshold
                    and member.date_of_birth == date_of_birth):
                logger.debug(f"Matched {first_name} {last_name} to member {member.member_id} by name and birth date.")
                return member
        return None

    # --- Alerts ---
    def _raise_alert(self, member: MemberRecord, result: ProcessingResult, alert_type: AlertType,
                     severity: AlertSeverity, message: str, details: Dict[str, Any]):
        # An identical unresolved alert is not raised twice.
        if any(a.type == alert_type and a.message == message and not a.resolved for a in member.alerts):
            return
        member.alerts.append(MemberAlert(
            id=_generate_id(),
            type=alert_type,
            severity=severity,
            message=message,
            details=details,
            date_created=self._clock(),
        ))
        result.alerts.append(ProcessingAlert(type=alert_type, severity=severity, message=message, member_id=member.member_id))
        logger.warning(f"Member {member.member_id}: {message}")

    def _check_data_consistency(self, existing: MemberRecord, first_name: str, last_name: str,
                                date_of_birth: str, result: ProcessingResult):
        inconsistencies = []
        if first_name and first_name != existing.first_name:
            inconsistencies.append(f'First name changed from "{existing.first_name}" to "{first_name}"')
        if last_name and last_name != existing.last_name:
            inconsistencies.append(f'Last name changed from "{existing.last_name}" to "{last_name}"')
        if date_of_birth and date_of_birth != existing.date_of_birth:
            inconsistencies.append(f'Date of birth changed from "{existing.date_of_birth}" to "{date_of_birth}"')

        if inconsistencies:
            result.warnings += 1
            self._raise_alert(existing, result, 'data_inconsistency', 'medium',
                              'Data inconsistencies detected', {'inconsistencies': inconsistencies})

    def _run_quality_checks(self, member: MemberRecord, result: ProcessingResult):
        now = self._clock()
        window_start = now - timedelta(days=self.settings.duplicate_window_days)
        recent_enrollments = [
            e for e in member.lifecycle if e.event_type == 'enrollment' and e.event_date > window_start
        ]
        if len(recent_enrollments) > 1:
            self._raise_alert(
                member, result, 'duplicate_enrollment', 'high',
                f"Multiple enrollments detected within {self.settings.duplicate_window_days} days",
                {'enrollmentCount': len(recent_enrollments)},
            )

        self._check_coverage_gaps(member, result)
        self._check_missing_termination(member, result, now)

    def _check_coverage_gaps(self, member: MemberRecord, result: ProcessingResult):
        events = sorted(
            (e for e in member.lifecycle if e.event_type in ('enrollment', 'termination')),
            key=lambda e: e.effective_date,
        )
        for previous, current in zip(events, events[1:]):
            if previous.event_type != 'termination' or current.event_type != 'enrollment':
                continue
            gap_days = (current.effective_date - previous.effective_date).days
            if gap_days > self.settings.coverage_gap_days:
                self._raise_alert(
                    member, result, 'gap_in_coverage',
                    'high' if gap_days > self.settings.long_gap_days else 'medium',
                    f"Coverage gap of {gap_days} days detected",
                    {'gapDays': gap_days, 'fromDate': previous.effective_date.isoformat(),
                     'toDate': current.effective_date.isoformat()},
                )

    def _check_missing_termination(self, member: MemberRecord, result: ProcessingResult, now: datetime):
        enrollments = [e for e in member.lifecycle if e.event_type == 'enrollment']
        has_termination = any(e.event_type == 'termination' for e in member.lifecycle)
        if not enrollments or has_termination or member.current_status != 'active':
            return

        last_enrollment = max(enrollments, key=lambda e: e.effective_date)
        days_since = (now - last_enrollment.effective_date).days
        if days_since > self.settings.missing_termination_days:
            self._raise_alert(
                member, result, 'missing_termination', 'medium',
                f"Active enrollment without termination for {days_since} days",
                {'daysSinceEnrollment': days_since, 'enrollmentDate': last_enrollment.effective_date.isoformat()},
            )

    # --- Queries ---
    def get_member(self, member_id: str) -> Optional[MemberRecord]:
        return next((m for m in self._members.values() if m.member_id == member_id), None)

    def get_all_members(self) -> List[MemberRecord]:
        return list(self._members.values())

    def get_members_by_payer(self, payer_id: str) -> List[MemberRecord]:
        return [m for m in self._members.values() if m.payer_id == payer_id]

    def get_active_members(self) -> List[MemberRecord]:
        return [m for m in self._members.values() if m.current_status == 'active']

    def get_members_with_alerts(self) -> List[MemberRecord]:
        return [m for m in self._members.values() if any(not a.resolved for a in m.alerts)]

    def get_lifecycle_stats(self) -> LifecycleStats:
        members = self.get_all_members()

        def count_events(event_type: str) -> int:
            return sum(1 for m in members for e in m.lifecycle if e.event_type == event_type)

        alerts_by_type: Dict[str, int] = {}
        for member in members:
            for alert in member.alerts:
                if not alert.resolved:
                    alerts_by_type[alert.type] = alerts_by_type.get(alert.type, 0) + 1

        return LifecycleStats(
            total_members=len(members),
            active_members=len(self.get_active_members()),
            total_enrollments=count_events('enrollment'),
            total_terminations=count_events('termination'),
            total_changes=count_events('change'),
            members_with_alerts=len(self.get_members_with_alerts()),
            alerts_by_type=alerts_by_type,
        )
