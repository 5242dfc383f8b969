"""Turn a student's enrollments and class sessions into billable sessions for a month."""

from dataclasses import dataclass, field
from datetime import date

from sqlalchemy import or_
from sqlalchemy.orm import Session

from tutorclub.app.core.time import month_end, month_start, next_month_start, validate_month
from tutorclub.app.models.attendance import Attendance
from tutorclub.app.models.enrollment import Enrollment
from tutorclub.app.models.session import Session as SessionModel

NON_BILLABLE_SESSION_STATUSES = ("Canceled", "Holiday")
PROJECTED_SESSION_STATUSES = ("Scheduled", "Held")


@dataclass(frozen=True)
class BillableSession:
    session_id: int
    class_id: int
    class_name: str
    date: date
    rate: int
    status: str
    billable: bool


@dataclass
class ClassTotal:
    class_id: int
    class_name: str
    session_count: int = 0
    amount: int = 0


@dataclass
class MonthAggregate:
    student_id: int
    month: str
    sessions: list[BillableSession] = field(default_factory=list)
    per_class: dict[int, ClassTotal] = field(default_factory=dict)

    @property
    def billable_sessions(self) -> list[BillableSession]:
        return [s for s in self.sessions if s.billable]

    @property
    def base_amount(self) -> int:
        return sum(s.rate for s in self.billable_sessions)

    @property
    def excused_loss(self) -> int:
        return sum(s.rate for s in self.billable_sessions if s.status == "Excused")

    def for_class(self, class_id: int) -> "MonthAggregate":
        return MonthAggregate(
            student_id=self.student_id,
            month=self.month,
            sessions=[s for s in self.sessions if s.class_id == class_id],
            per_class={k: v for k, v in self.per_class.items() if k == class_id},
        )


def display_status(session: SessionModel, today: date | None = None) -> str:
    """Future sessions always display as Scheduled, whatever is stored."""
    today = today or date.today()
    if session.date > today:
        return "Scheduled"
    return session.status


def resolve_rate(session: SessionModel, enrollment: Enrollment) -> int:
    for candidate in (
        session.rate_override_vnd,
        enrollment.rate_override_vnd,
        session.school_class.session_rate_vnd if session.school_class else None,
    ):
        if candidate is not None:
            return int(candidate)
    return 0


def _billing_status(session: SessionModel, attendance_status: str | None) -> tuple[bool, str]:
    if session.status in NON_BILLABLE_SESSION_STATUSES:
        return False, session.status
    if session.status == "Held":
        # Held without an attendance row follows the default-Present policy.
        return True, attendance_status or "Present"
    if attendance_status:
        return True, attendance_status
    return False, "Scheduled"


def _enrollments_for_month(db: Session, student_id: int, month: str) -> list[Enrollment]:
    return (
        db.query(Enrollment)
        .filter(
            Enrollment.student_id == student_id,
            Enrollment.start_date <= month_end(month),
            or_(Enrollment.end_date.is_(None), Enrollment.end_date >= month_start(month)),
        )
        .order_by(Enrollment.start_date.desc(), Enrollment.id.desc())
        .all()
    )


def _sessions_in_windows(
    db: Session,
    student_id: int,
    month: str,
    statuses: tuple[str, ...] | None = None,
    class_id: int | None = None,
) -> list[tuple[SessionModel, Enrollment]]:
    validate_month(month)
    enrollments = _enrollments_for_month(db, student_id, month)
    if class_id is not None:
        enrollments = [e for e in enrollments if e.class_id == class_id]
    if not enrollments:
        return []

    query = db.query(SessionModel).filter(
        SessionModel.class_id.in_({e.class_id for e in enrollments}),
        SessionModel.date >= month_start(month),
        SessionModel.date < next_month_start(month),
    )
    if statuses is not None:
        query = query.filter(SessionModel.status.in_(statuses))
    sessions = query.order_by(SessionModel.date.asc(), SessionModel.start_time.asc(), SessionModel.id.asc()).all()

    pairs = []
    for session in sessions:
        # Latest-starting enrollment whose window contains the session date.
        enrollment = next(
            (e for e in enrollments if e.class_id == session.class_id and e.covers(session.date)),
            None,
        )
        if enrollment is not None:
            pairs.append((session, enrollment))
    return pairs


def aggregate_month(db: Session, student_id: int, month: str, class_id: int | None = None) -> MonthAggregate:
    """Billable view of one student's month, across all classes or for one class."""
    pairs = _sessions_in_windows(db, student_id, month, class_id=class_id)
    aggregate = MonthAggregate(student_id=student_id, month=month)
    if not pairs:
        return aggregate

    attendance = dict(
        db.query(Attendance.session_id, Attendance.status)
        .filter(
            Attendance.student_id == student_id,
            Attendance.session_id.in_([s.id for s, _ in pairs]),
        )
        .all()
    )

    for session, enrollment in pairs:
        rate = resolve_rate(session, enrollment)
        billable, status = _billing_status(session, attendance.get(session.id))
        billable = billable and rate > 0
        class_name = session.school_class.name if session.school_class else ""
        aggregate.sessions.append(
            BillableSession(
                session_id=session.id,
                class_id=session.class_id,
                class_name=class_name,
                date=session.date,
                rate=rate,
                status=status,
                billable=billable,
            )
        )
        total = aggregate.per_class.setdefault(session.class_id, ClassTotal(session.class_id, class_name))
        if billable:
            total.session_count += 1
            total.amount += rate
    return aggregate


def project_month(db: Session, student_id: int, month: str) -> dict[int, ClassTotal]:
    """Projected per-class tuition: every Scheduled or Held session in the enrollment windows."""
    projected: dict[int, ClassTotal] = {}
    for session, enrollment in _sessions_in_windows(db, student_id, month, statuses=PROJECTED_SESSION_STATUSES):
        class_name = session.school_class.name if session.school_class else ""
        total = projected.setdefault(session.class_id, ClassTotal(session.class_id, class_name))
        rate = resolve_rate(session, enrollment)
        if rate > 0:
            total.session_count += 1
            total.amount += rate
    return projected
