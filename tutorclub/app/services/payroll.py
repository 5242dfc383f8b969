"""Teacher payroll: held session minutes times the hourly rate, per month."""

import logging
from datetime import time
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from tutorclub.app.core.errors import NotFound
from tutorclub.app.core.time import month_start, next_month_start, utc_now, validate_month
from tutorclub.app.db.upsert import upsert_snapshot
from tutorclub.app.models.payroll_summary import PayrollSummary
from tutorclub.app.models.school_class import SchoolClass
from tutorclub.app.models.session import Session as SessionModel
from tutorclub.app.models.teacher import Teacher
from tutorclub.app.services.audit import record_audit
from tutorclub.app.services.billing import round_half_up

logger = logging.getLogger(__name__)


def session_minutes(start_time: time | None, end_time: time | None) -> int:
    """Duration in whole minutes; missing or inverted times count as zero."""
    if start_time is None or end_time is None:
        return 0
    start = start_time.hour * 60 + start_time.minute
    end = end_time.hour * 60 + end_time.minute
    return max(end - start, 0)


def pay_for_minutes(minutes: int, hourly_rate_vnd: int) -> int:
    return round_half_up(Decimal(minutes) * Decimal(hourly_rate_vnd) / Decimal(60))


def _hours(minutes: int) -> Decimal:
    return (Decimal(minutes) / Decimal(60)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def _teacher_sessions(db: Session, teacher: Teacher, month: str, statuses: tuple[str, ...]) -> list[SessionModel]:
    # Sessions without an explicit teacher belong to the class's default teacher.
    return (
        db.query(SessionModel)
        .join(SchoolClass, SchoolClass.id == SessionModel.class_id)
        .filter(
            or_(
                SessionModel.teacher_id == teacher.id,
                and_(SessionModel.teacher_id.is_(None), SchoolClass.default_teacher_id == teacher.id),
            ),
            SessionModel.status.in_(statuses),
            SessionModel.date >= month_start(month),
            SessionModel.date < next_month_start(month),
        )
        .order_by(SessionModel.date.asc(), SessionModel.start_time.asc(), SessionModel.id.asc())
        .all()
    )


def _totals(sessions: list[SessionModel], hourly_rate_vnd: int) -> dict:
    total_minutes = 0
    details = []
    for session in sessions:
        minutes = session_minutes(session.start_time, session.end_time)
        if minutes == 0:
            logger.warning(
                "Session %s on %s has no valid duration (%s-%s); counted as 0 minutes",
                session.id,
                session.date,
                session.start_time,
                session.end_time,
            )
        total_minutes += minutes
        details.append(
            {
                "sessionId": session.id,
                "date": session.date.isoformat(),
                "startTime": session.start_time.isoformat() if session.start_time else None,
                "endTime": session.end_time.isoformat() if session.end_time else None,
                "minutes": minutes,
                "amount": pay_for_minutes(minutes, hourly_rate_vnd),
            }
        )
    return {
        "minutes": total_minutes,
        "hours": _hours(total_minutes),
        "amount": pay_for_minutes(total_minutes, hourly_rate_vnd),
        "count": len(sessions),
        "details": details,
    }


def calculate_payroll(db: Session, month: str, teacher_id: int | None = None, actor_id: int | None = None) -> dict:
    validate_month(month)
    query = db.query(Teacher).filter(Teacher.is_active.is_(True))
    if teacher_id is not None:
        query = query.filter(Teacher.id == teacher_id)
    teachers = query.order_by(Teacher.id.asc()).all()
    if teacher_id is not None and not teachers:
        raise NotFound(f"Active teacher {teacher_id} not found")

    payroll = []
    try:
        for teacher in teachers:
            rate = int(teacher.hourly_rate_vnd or 0)
            actual = _totals(_teacher_sessions(db, teacher, month, ("Held",)), rate)
            projected = _totals(_teacher_sessions(db, teacher, month, ("Held", "Scheduled")), rate)

            upsert_snapshot(
                db,
                PayrollSummary,
                {
                    "teacher_id": teacher.id,
                    "month": month,
                    "total_hours": actual["hours"],
                    "total_amount": actual["amount"],
                    "sessions_count": actual["count"],
                    "updated_at": utc_now(),
                },
                ["teacher_id", "month"],
            )
            payroll.append(
                {
                    "teacherId": teacher.id,
                    "teacherName": teacher.full_name,
                    "hourlyRate": rate,
                    "sessionsCountActual": actual["count"],
                    "totalMinutesActual": actual["minutes"],
                    "totalHoursActual": float(actual["hours"]),
                    "totalAmountActual": actual["amount"],
                    "sessionsCountProjected": projected["count"],
                    "totalMinutesProjected": projected["minutes"],
                    "totalHoursProjected": float(projected["hours"]),
                    "totalAmountProjected": projected["amount"],
                    "sessionDetailsActual": actual["details"],
                    "sessionDetailsProjected": projected["details"],
                }
            )
        record_audit(
            db,
            "calculate_payroll",
            "payroll_summary",
            month,
            actor_id,
            {"teacher_id": teacher_id, "teachers": len(payroll)},
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("Payroll for %s computed for %s teachers", month, len(payroll))
    return {
        "month": month,
        "totalTeachers": len(payroll),
        "grandTotal": sum(row["totalAmountActual"] for row in payroll),
        "grandTotalProjected": sum(row["totalAmountProjected"] for row in payroll),
        "payrollData": payroll,
    }
