"""Academic administration routes.

Administrators manage students, teachers, classes, enrollments, grades and
attendance records here.
"""

import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Query

from core.access import AdminDep
from core.dependencies import AttendanceManagerDep, ClassManagerDep, UserManagerDep
from schemas.academic import (
    BulkEnrollmentRequest,
    ClassCreate,
    ClassInfo,
    ClassStudentInfo,
    DashboardStats,
    EnrollmentCreate,
    EnrollmentInfo,
    GradeGroupCatalog,
    GradeShiftRequest,
    GradeShiftResult,
    GroupDeleteResult,
    ImportSummary,
    StudentCreate,
    StudentImportRequest,
    StudentInfo,
    TeacherCreate,
    TeacherInfo,
)
from schemas.attendance import AttendanceDeleteResult, ClassAttendanceReport
from schemas.auth import MessageResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["Admin"])


# --- Students ---


@router.post("/students", response_model=StudentInfo, summary="Create a student")
def create_student(
    req: StudentCreate,
    identity: AdminDep,
    user_manager: UserManagerDep,
) -> StudentInfo:
    return StudentInfo.model_validate(user_manager.create_student(req))


@router.post("/students/import", response_model=ImportSummary, summary="Import students")
def import_students(
    req: StudentImportRequest,
    identity: AdminDep,
    user_manager: UserManagerDep,
) -> ImportSummary:
    """Import parsed CSV rows.

    Invalid and duplicate rows are skipped and listed in the summary; the rest
    are inserted together.

    Args:
        req: Parsed rows and the duplicate policy.
        identity: Authenticated administrator.
        user_manager: Injected UserManager instance.

    Returns:
        ImportSummary with inserted and skipped counts.
    """
    summary = user_manager.import_students(
        req.rows, skip_duplicates=req.skip_duplicates, class_id=req.class_id
    )
    logger.info("Administrator %s imported students: %d inserted", identity.id, summary.inserted)
    return summary


@router.get("/students", response_model=List[StudentInfo], summary="List students")
def list_students(
    identity: AdminDep,
    user_manager: UserManagerDep,
    grade: Optional[int] = None,
    group: Optional[str] = None,
) -> List[StudentInfo]:
    return [StudentInfo.model_validate(s) for s in user_manager.list_students(grade, group)]


# --- Teachers ---


@router.post("/teachers", response_model=TeacherInfo, summary="Create a teacher")
def create_teacher(
    req: TeacherCreate,
    identity: AdminDep,
    user_manager: UserManagerDep,
) -> TeacherInfo:
    return TeacherInfo.model_validate(user_manager.create_teacher(req))


@router.get("/teachers", response_model=List[TeacherInfo], summary="List teachers")
def list_teachers(identity: AdminDep, user_manager: UserManagerDep) -> List[TeacherInfo]:
    return [TeacherInfo.model_validate(t) for t in user_manager.list_teachers()]


# --- Classes ---


@router.post("/classes", response_model=ClassInfo, summary="Create a class")
def create_class(
    req: ClassCreate,
    identity: AdminDep,
    class_manager: ClassManagerDep,
) -> ClassInfo:
    model = class_manager.create_class(req.teacher_id, req.name, req.code)
    return ClassInfo.model_validate(model)


@router.get("/classes", response_model=List[ClassInfo], summary="List classes")
def list_classes(
    identity: AdminDep,
    class_manager: ClassManagerDep,
    teacher_id: Optional[int] = None,
) -> List[ClassInfo]:
    return class_manager.list_classes(teacher_id=teacher_id)


@router.delete("/classes/{class_id}", response_model=MessageResponse, summary="Delete a class")
def delete_class(
    class_id: int,
    identity: AdminDep,
    class_manager: ClassManagerDep,
) -> MessageResponse:
    class_manager.delete_class(class_id)
    return MessageResponse(message="Class deleted successfully")


@router.get(
    "/classes/{class_id}/students",
    response_model=List[ClassStudentInfo],
    summary="List enrolled students",
)
def list_class_students(
    class_id: int,
    identity: AdminDep,
    class_manager: ClassManagerDep,
) -> List[ClassStudentInfo]:
    class_manager.get_class(class_id)
    return class_manager.list_class_students(class_id)


# --- Enrollments ---


@router.post("/enrollments", response_model=EnrollmentInfo, summary="Enroll a student")
def enroll_student(
    req: EnrollmentCreate,
    identity: AdminDep,
    class_manager: ClassManagerDep,
) -> EnrollmentInfo:
    model = class_manager.enroll_student(req.student_id, req.class_id)
    return EnrollmentInfo(
        enrollment_id=model.enrollment_id,
        student_id=model.student_id,
        class_id=model.class_id,
        enrolled_at=model.enrolled_at,
    )


@router.post("/enrollments/bulk", response_model=ImportSummary, summary="Enroll many students")
def bulk_enroll(
    req: BulkEnrollmentRequest,
    identity: AdminDep,
    class_manager: ClassManagerDep,
) -> ImportSummary:
    return class_manager.bulk_enroll(req.class_id, req.student_ids)


@router.delete(
    "/enrollments/{enrollment_id}", response_model=MessageResponse, summary="Remove an enrollment"
)
def remove_enrollment(
    enrollment_id: int,
    identity: AdminDep,
    class_manager: ClassManagerDep,
) -> MessageResponse:
    class_manager.unenroll(enrollment_id)
    return MessageResponse(message="Enrollment removed successfully")


# --- Grades and groups ---


@router.get("/dashboard/stats", response_model=DashboardStats, summary="Dashboard counts")
def dashboard_stats(identity: AdminDep, user_manager: UserManagerDep) -> DashboardStats:
    return user_manager.dashboard_stats()


@router.get("/grades-groups", response_model=GradeGroupCatalog, summary="Grades and groups in use")
def list_grades_groups(identity: AdminDep, user_manager: UserManagerDep) -> GradeGroupCatalog:
    return user_manager.list_grades_groups()


@router.post("/students/promote-grade", response_model=GradeShiftResult, summary="Promote students")
def promote_grade(
    req: GradeShiftRequest,
    identity: AdminDep,
    user_manager: UserManagerDep,
) -> GradeShiftResult:
    """Move students up one grade.

    Students already in the last grade stay where they are. Grade and group
    filters narrow the move; without them every student is promoted.
    """
    updated = user_manager.promote_grade(grade=req.grade, group=req.group)
    logger.info("Administrator %s promoted %d students", identity.id, updated)
    return GradeShiftResult(updated=updated)


@router.post("/students/demote-grade", response_model=GradeShiftResult, summary="Demote students")
def demote_grade(
    req: GradeShiftRequest,
    identity: AdminDep,
    user_manager: UserManagerDep,
) -> GradeShiftResult:
    updated = user_manager.demote_grade(grade=req.grade, group=req.group)
    logger.info("Administrator %s demoted %d students", identity.id, updated)
    return GradeShiftResult(updated=updated)


@router.delete(
    "/groups/{grade}/{group}", response_model=GroupDeleteResult, summary="Delete a whole group"
)
def delete_group(
    grade: int,
    group: str,
    identity: AdminDep,
    user_manager: UserManagerDep,
) -> GroupDeleteResult:
    deleted = user_manager.delete_group(grade, group)
    logger.info("Administrator %s deleted group %s%s", identity.id, grade, group)
    return GroupDeleteResult(grade=grade, group=group.strip().upper(), deleted=deleted)


# --- Attendance ---


@router.get(
    "/classes/{class_id}/attendance",
    response_model=ClassAttendanceReport,
    summary="Attendance of a class",
)
def class_attendance(
    class_id: int,
    identity: AdminDep,
    attendance_manager: AttendanceManagerDep,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    student_id: Optional[int] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(100, ge=1, le=100),
) -> ClassAttendanceReport:
    return attendance_manager.class_attendance(
        class_id,
        date_from=date_from,
        date_to=date_to,
        student_id=student_id,
        page=page,
        limit=limit,
    )


@router.delete(
    "/classes/{class_id}/attendance",
    response_model=AttendanceDeleteResult,
    summary="Clear the attendance history of a class",
)
def delete_class_attendance(
    class_id: int,
    identity: AdminDep,
    attendance_manager: AttendanceManagerDep,
) -> AttendanceDeleteResult:
    return AttendanceDeleteResult(deleted=attendance_manager.delete_class_attendance(class_id))


@router.delete(
    "/attendance/{attendance_id}", response_model=MessageResponse, summary="Delete one mark"
)
def delete_attendance(
    attendance_id: int,
    identity: AdminDep,
    attendance_manager: AttendanceManagerDep,
) -> MessageResponse:
    attendance_manager.delete_attendance(attendance_id)
    return MessageResponse(message="Attendance record deleted")
