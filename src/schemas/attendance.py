"""Attendance schema definitions."""

from datetime import date
from typing import Dict, List, Optional

from pydantic import BaseModel


class AttendanceEntry(BaseModel):
    student_id: int
    status: str


class AttendanceBatch(BaseModel):
    attendance_date: date
    entries: List[AttendanceEntry]


class AttendanceResult(BaseModel):
    action: str  # "recorded" or "updated"
    total: int
    attendance_date: date
    class_id: int


class AttendanceRecord(BaseModel):
    student_id: int
    full_name: str
    enrollment_number: str
    status: str


class AttendanceDay(BaseModel):
    attendance_date: date
    counts: Dict[str, int]
    total: int


class AttendanceLogEntry(BaseModel):
    attendance_id: int
    attendance_date: date
    status: str
    student_id: int
    full_name: str
    enrollment_number: str
    recorded_by: int
    recorded_by_name: Optional[str] = None


class ClassAttendanceReport(BaseModel):
    """Attendance marks of one class for administrators."""

    class_id: int
    class_name: str
    code: str
    records: List[AttendanceLogEntry]
    counts: Dict[str, int]
    total: int


class AttendanceDeleteResult(BaseModel):
    deleted: int
