"""Student, teacher, class and enrollment schema definitions."""

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from config import MAX_GRADE, MIN_GRADE


class SkipReason(BaseModel):
    key: str = Field(description="Row identifier, e.g. enrollment number or student id.")
    reason: str


class ImportSummary(BaseModel):
    """Result of a batch import. Invalid rows are skipped, valid rows inserted."""

    inserted: int = 0
    skipped: int = 0
    reasons: List[SkipReason] = Field(default_factory=list)

    def skip(self, key, reason: str) -> None:
        self.skipped += 1
        self.reasons.append(SkipReason(key=str(key), reason=reason))


class StudentCreate(BaseModel):
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    second_last_name: Optional[str] = None
    email: str = Field(min_length=3)
    grade: int = Field(ge=MIN_GRADE, le=MAX_GRADE)
    group: str = Field(min_length=1)
    enrollment_number: str = Field(min_length=1)
    phone: Optional[str] = None
    address: Optional[str] = None
    birth_date: Optional[date] = None


class StudentImportRequest(BaseModel):
    rows: List[dict] = Field(description="Parsed CSV rows, one dict per student.")
    skip_duplicates: bool = Field(
        default=True,
        description="Skip rows whose enrollment number or email already exists.",
    )
    class_id: Optional[int] = Field(
        default=None, description="Class to enroll the imported students in."
    )


class StudentInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    student_id: int
    first_name: str
    last_name: str
    second_last_name: Optional[str] = None
    email: str
    grade: int
    group: str
    enrollment_number: str


class TeacherCreate(BaseModel):
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    second_last_name: Optional[str] = None
    email: str = Field(min_length=3)
    phone: Optional[str] = None


class TeacherInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    teacher_id: int
    first_name: str
    last_name: str
    second_last_name: Optional[str] = None
    email: str


class ClassCreate(BaseModel):
    teacher_id: int
    name: str = Field(min_length=1)
    code: str = Field(min_length=1)


class ClassInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    class_id: int
    teacher_id: int
    name: str
    code: str
    total_students: int = 0


class EnrollmentCreate(BaseModel):
    student_id: int
    class_id: int


class BulkEnrollmentRequest(BaseModel):
    class_id: int
    student_ids: List[int]


class EnrollmentInfo(BaseModel):
    enrollment_id: int
    student_id: int
    class_id: int
    enrolled_at: datetime


class ClassStudentInfo(BaseModel):
    enrollment_id: int
    student_id: int
    first_name: str
    last_name: str
    second_last_name: Optional[str] = None
    enrollment_number: str
    grade: int
    group: str


class GradeShiftRequest(BaseModel):
    """Filters for a grade promotion or demotion. No filters moves everyone."""

    grade: Optional[int] = Field(default=None, description="Only move students in this grade.")
    group: Optional[str] = Field(default=None, description="Only move students in this group.")


class GradeShiftResult(BaseModel):
    updated: int


class GroupDeleteResult(BaseModel):
    grade: int
    group: str
    deleted: int


class GroupCount(BaseModel):
    grade: int
    group: str
    total: int


class GradeGroupCatalog(BaseModel):
    grades: List[int]
    groups: List[str]


class DashboardStats(BaseModel):
    students: int
    teachers: int
    classes: int
    pending_notifications: int
    distribution: List[GroupCount]
