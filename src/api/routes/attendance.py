"""Attendance routes for the teacher owning a class."""

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Query

from core.access import TeacherDep
from core.dependencies import AttendanceManagerDep
from schemas.academic import ClassStudentInfo
from schemas.attendance import (
    AttendanceBatch,
    AttendanceDay,
    AttendanceRecord,
    AttendanceResult,
)

router = APIRouter(prefix="/api/attendance", tags=["Attendance"])


@router.get("/{class_id}/students", response_model=List[ClassStudentInfo], summary="Roster")
def class_roster(
    class_id: int,
    identity: TeacherDep,
    attendance_manager: AttendanceManagerDep,
) -> List[ClassStudentInfo]:
    return attendance_manager.class_roster(class_id, identity.id)


@router.post("/{class_id}", response_model=AttendanceResult, summary="Record attendance")
def record_attendance(
    class_id: int,
    req: AttendanceBatch,
    identity: TeacherDep,
    attendance_manager: AttendanceManagerDep,
) -> AttendanceResult:
    """Record or correct attendance for one date.

    Args:
        class_id: Class the marks belong to.
        req: Date and one status per student.
        identity: Authenticated teacher owning the class.
        attendance_manager: Injected AttendanceManager instance.

    Returns:
        AttendanceResult telling whether marks were recorded or updated.
    """
    return attendance_manager.record_attendance(
        class_id, identity.id, req.attendance_date, req.entries
    )


@router.get("/{class_id}/history", response_model=List[AttendanceDay], summary="History")
def attendance_history(
    class_id: int,
    identity: TeacherDep,
    attendance_manager: AttendanceManagerDep,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    limit: int = Query(10, ge=1, le=100),
) -> List[AttendanceDay]:
    return attendance_manager.history(
        class_id, identity.id, date_from=date_from, date_to=date_to, limit=limit
    )


@router.get("/{class_id}/date", response_model=List[AttendanceRecord], summary="Marks for a date")
def attendance_for_date(
    class_id: int,
    identity: TeacherDep,
    attendance_manager: AttendanceManagerDep,
    attendance_date: date = Query(..., alias="date"),
) -> List[AttendanceRecord]:
    return attendance_manager.attendance_for_date(class_id, identity.id, attendance_date)
