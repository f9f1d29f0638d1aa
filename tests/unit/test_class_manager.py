"""Unit tests for ClassManager."""

import pytest

from core.exceptions import AuthorizationError, ConflictError, NotFoundError
from models.enrollment import EnrollmentModel
from models.user import StudentModel
from utils.class_manager import ClassManager


@pytest.fixture
def classes(db_session, school) -> ClassManager:
    return ClassManager(db_session)


class TestClasses:
    """Tests for class creation, listing and ownership."""

    def test_create_class(self, classes) -> None:
        created = classes.create_class(2, " Chemistry ", "CHE-3")

        assert created.name == "Chemistry"
        assert created.teacher_id == 2

    def test_create_class_duplicate_code(self, classes) -> None:
        with pytest.raises(ConflictError) as exc_info:
            classes.create_class(2, "Maths again", "MAT-3")

        assert exc_info.value.code == "DUPLICATE_CLASS_CODE"

    def test_create_class_unknown_teacher(self, classes) -> None:
        with pytest.raises(NotFoundError):
            classes.create_class(9, "Art", "ART-1")

    def test_list_classes_counts_students(self, classes) -> None:
        listed = {c.name: c.total_students for c in classes.list_classes(teacher_id=1)}

        assert listed == {"Mathematics": 6, "History": 2}

    def test_list_classes_for_student(self, classes) -> None:
        assert [c.name for c in classes.list_classes_for_student(2)] == ["Biology", "Mathematics"]

    def test_ensure_owner(self, classes) -> None:
        assert classes.ensure_owner(3, 2).name == "Biology"

        with pytest.raises(AuthorizationError):
            classes.ensure_owner(3, 1)
        with pytest.raises(NotFoundError):
            classes.ensure_owner(77, 1)

    def test_delete_class_removes_enrollments(self, classes, db_session) -> None:
        classes.delete_class(2)

        assert db_session.query(EnrollmentModel).filter(EnrollmentModel.class_id == 2).count() == 0
        with pytest.raises(NotFoundError):
            classes.get_class(2)


class TestEnrollments:
    """Tests for enrolling and unenrolling students."""

    def test_enroll_student(self, classes) -> None:
        enrollment = classes.enroll_student(9, 1)

        assert enrollment.enrollment_id is not None
        assert 9 in {s.student_id for s in classes.list_class_students(1)}

    def test_enroll_twice(self, classes) -> None:
        with pytest.raises(ConflictError) as exc_info:
            classes.enroll_student(1, 1)

        assert exc_info.value.code == "ALREADY_ENROLLED"

    def test_enroll_unknown_student(self, classes) -> None:
        with pytest.raises(NotFoundError):
            classes.enroll_student(404, 1)

    def test_bulk_enroll_reports_skips(self, classes) -> None:
        summary = classes.bulk_enroll(2, [9, 7, 404, 9, 10])

        assert summary.inserted == 2
        assert [(r.key, r.reason) for r in summary.reasons] == [
            ("7", "Already enrolled"),
            ("404", "Student not found"),
        ]

    def test_bulk_enroll_counts_new_rows(self, classes, db_session) -> None:
        newcomers = [
            StudentModel(
                first_name=f"Transfer{i}",
                last_name="Silva",
                email=f"transfer{i}@school.edu",
                grade=2,
                group="A",
                enrollment_number=f"T{i:04d}",
            )
            for i in range(10)
        ]
        db_session.add_all(newcomers)
        db_session.commit()
        enrollments_before = db_session.query(EnrollmentModel).count()

        summary = classes.bulk_enroll(2, [s.student_id for s in newcomers] + [7, 8])

        assert (summary.inserted, summary.skipped) == (10, 2)
        assert {r.reason for r in summary.reasons} == {"Already enrolled"}
        assert db_session.query(EnrollmentModel).count() == enrollments_before + 10
        assert len(classes.list_class_students(2)) == 12

    def test_unenroll(self, classes, db_session) -> None:
        enrollment = (
            db_session.query(EnrollmentModel)
            .filter(EnrollmentModel.class_id == 3, EnrollmentModel.student_id == 2)
            .one()
        )

        classes.unenroll(enrollment.enrollment_id)

        assert [c.name for c in classes.list_classes_for_student(2)] == ["Mathematics"]

    def test_student_audience(self, classes) -> None:
        audience = classes.student_audience(2)

        assert audience.class_ids == frozenset({1, 3})
        assert audience.class_owner_ids == frozenset({1, 2})
        assert (audience.grade, audience.group) == (3, "B")
