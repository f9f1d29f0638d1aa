"""Unit tests for notification audience targeting.

Covers payload parsing, the read-time inclusion predicate and creation-time
authorization of teacher and administrator targets.
"""

import pytest

from core.exceptions import AuthorizationError, ValidationError
from core.security import ROLE_ADMINISTRATOR, ROLE_STUDENT, ROLE_TEACHER
from models.notification import NotificationModel
from utils.targeting import (
    AllOwnedStudents,
    AllStudents,
    ClassWide,
    GradeWide,
    GroupWide,
    SpecificStudents,
    StudentAudience,
    TargetAuthorizer,
    TargetMode,
    build_target_spec,
    includes,
    spec_columns,
    spec_includes,
    spec_from_notification,
)


def audience(student_id=7, grade=3, group="A", class_ids=(), owners=()):
    return StudentAudience(
        student_id=student_id,
        grade=grade,
        group=group,
        class_ids=frozenset(class_ids),
        class_owner_ids=frozenset(owners),
    )


def stored(mode, target_ids=None, grade=None, group=None, role=ROLE_TEACHER, creator=1):
    return NotificationModel(
        notification_id=99,
        title="t",
        message="m",
        target_mode=mode,
        target_ids=target_ids,
        target_grade=grade,
        target_group=group,
        status="Approved",
        created_by_id=creator,
        created_by_role=role,
    )


class TestBuildTargetSpec:
    """Tests for building target specs from request values."""

    def test_specific_students(self) -> None:
        spec = build_target_spec("ALUMNOS_ESPECIFICOS", ids=[5, "8", 5])

        assert spec == SpecificStudents(frozenset({5, 8}))
        assert spec.mode is TargetMode.SPECIFIC_STUDENTS

    def test_class_wide(self) -> None:
        assert build_target_spec("ALUMNOS_CLASE", ids=[1, 2]) == ClassWide(frozenset({1, 2}))

    def test_group_is_normalized(self) -> None:
        assert build_target_spec("ALUMNOS_GRUPO", grade="3", group=" b ") == GroupWide(3, "B")

    def test_payloadless_modes(self) -> None:
        assert build_target_spec("TODOS_MIS_ALUMNOS") == AllOwnedStudents()
        assert build_target_spec("TODOS_ALUMNOS") == AllStudents()

    @pytest.mark.parametrize(
        "kwargs, code",
        [
            ({"mode": "ALUMNOS_ESPECIFICOS", "ids": []}, "NO_RECIPIENTS"),
            ({"mode": "ALUMNOS_CLASE", "ids": None}, "NO_RECIPIENTS"),
            ({"mode": "ALUMNOS_ESPECIFICOS", "ids": ["x"]}, "INVALID_RECIPIENTS"),
            ({"mode": "ALUMNOS_ESPECIFICOS", "ids": [True]}, "INVALID_RECIPIENTS"),
            ({"mode": "ALUMNOS_ESPECIFICOS", "ids": [0]}, "INVALID_RECIPIENTS"),
            ({"mode": "ALUMNOS_GRADO"}, "MISSING_GRADE"),
            ({"mode": "ALUMNOS_GRADO", "grade": "third"}, "INVALID_GRADE"),
            ({"mode": "ALUMNOS_GRUPO", "grade": 3}, "MISSING_GROUP"),
            ({"mode": "alumnos_grupo", "grade": 3, "group": "B"}, "INVALID_TARGET_MODE"),
            ({"mode": "Multiples_Materias"}, "INVALID_TARGET_MODE"),
        ],
    )
    def test_malformed_payloads_are_rejected(self, kwargs, code) -> None:
        with pytest.raises(ValidationError) as exc_info:
            build_target_spec(**kwargs)

        assert exc_info.value.code == code

    def test_columns_round_trip_through_stored_row(self) -> None:
        spec = GroupWide(3, "B")
        columns = spec_columns(spec)

        assert columns == {
            "target_mode": "ALUMNOS_GRUPO",
            "target_ids": None,
            "target_grade": 3,
            "target_group": "B",
        }
        assert spec_from_notification(stored(**{
            "mode": columns["target_mode"],
            "grade": columns["target_grade"],
            "group": columns["target_group"],
        })) == spec

    def test_id_columns_are_sorted_json_lists(self) -> None:
        assert spec_columns(SpecificStudents(frozenset({8, 5})))["target_ids"] == [5, 8]


class TestIncludes:
    """Tests for the read-time inclusion predicate."""

    def test_specific_students(self) -> None:
        row = stored("ALUMNOS_ESPECIFICOS", target_ids=[5, 8])

        assert includes(row, audience(student_id=5))
        assert includes(row, audience(student_id=8))
        assert not includes(row, audience(student_id=7))

    def test_group_requires_grade_and_group(self) -> None:
        row = stored("ALUMNOS_GRUPO", grade=3, group="B", role=ROLE_ADMINISTRATOR)

        assert includes(row, audience(grade=3, group="B"))
        assert not includes(row, audience(grade=3, group="A"))
        assert not includes(row, audience(grade=2, group="B"))

    def test_group_comparison_ignores_case(self) -> None:
        row = stored("ALUMNOS_GRUPO", grade=3, group="B", role=ROLE_ADMINISTRATOR)

        assert includes(row, audience(grade=3, group="b"))

    def test_teacher_grade_target_reaches_only_own_students(self) -> None:
        row = stored("ALUMNOS_GRADO", grade=3, creator=1)

        assert includes(row, audience(grade=3, owners={1}))
        assert not includes(row, audience(grade=3, owners={2}))

    def test_admin_grade_target_reaches_whole_grade(self) -> None:
        row = stored("ALUMNOS_GRADO", grade=3, role=ROLE_ADMINISTRATOR)

        assert includes(row, audience(grade=3))
        assert not includes(row, audience(grade=2))

    def test_class_wide_needs_shared_class(self) -> None:
        row = stored("ALUMNOS_CLASE", target_ids=[1, 3])

        assert includes(row, audience(class_ids={3, 4}))
        assert not includes(row, audience(class_ids={2}))

    def test_all_my_students_follows_class_owner(self) -> None:
        row = stored("TODOS_MIS_ALUMNOS", creator=2)

        assert includes(row, audience(owners={1, 2}))
        assert not includes(row, audience(owners={1}))

    def test_all_students(self) -> None:
        assert includes(stored("TODOS_ALUMNOS", role=ROLE_ADMINISTRATOR), audience())

    @pytest.mark.parametrize(
        "row",
        [
            stored("Alumno_Especifico", target_ids=[7]),
            stored("ALUMNOS_ESPECIFICOS", target_ids=None),
            stored("ALUMNOS_ESPECIFICOS", target_ids=7),
            stored("ALUMNOS_ESPECIFICOS", target_ids="7"),
            stored("ALUMNOS_CLASE", target_ids={"class_id": 1}),
            stored("ALUMNOS_GRADO", grade=None),
        ],
    )
    def test_unusable_rows_are_excluded(self, row) -> None:
        assert includes(row, audience(student_id=7, grade=3)) is False

    def test_unknown_creator_role_is_not_scoped(self) -> None:
        assert spec_includes(GradeWide(3), 1, ROLE_STUDENT, audience(grade=3)) is True


class TestTargetAuthorizer:
    """Tests for creation-time target authorization."""

    def test_teacher_may_target_enrolled_students(self, db_session, school) -> None:
        TargetAuthorizer(db_session).authorize(
            ROLE_TEACHER, 1, SpecificStudents(frozenset({1, 7}))
        )

    def test_teacher_cannot_target_foreign_student(self, db_session, school) -> None:
        with pytest.raises(AuthorizationError) as exc_info:
            TargetAuthorizer(db_session).authorize(
                ROLE_TEACHER, 1, SpecificStudents(frozenset({1, 9}))
            )

        assert exc_info.value.code == "INVALID_STUDENTS"

    def test_teacher_cannot_target_foreign_class(self, db_session, school) -> None:
        with pytest.raises(AuthorizationError) as exc_info:
            TargetAuthorizer(db_session).authorize(ROLE_TEACHER, 1, ClassWide(frozenset({1, 3})))

        assert exc_info.value.code == "INVALID_CLASSES"

    def test_teacher_cannot_target_everyone(self, db_session, school) -> None:
        with pytest.raises(AuthorizationError):
            TargetAuthorizer(db_session).authorize(ROLE_TEACHER, 1, AllStudents())

    def test_teacher_group_without_matches_fails(self, db_session, school) -> None:
        authorizer = TargetAuthorizer(db_session)
        authorizer.authorize(ROLE_TEACHER, 1, GroupWide(3, "B"))

        with pytest.raises(AuthorizationError) as exc_info:
            # Teacher 2 teaches grade 3 only through student 2 (group B)
            authorizer.authorize(ROLE_TEACHER, 2, GroupWide(3, "A"))

        assert exc_info.value.code == "NO_MATCHING_STUDENTS"

    def test_teacher_grade_without_matches_fails(self, db_session, school) -> None:
        with pytest.raises(AuthorizationError):
            TargetAuthorizer(db_session).authorize(ROLE_TEACHER, 1, GradeWide(5))

    def test_teacher_without_classes_cannot_use_all_my_students(self, db_session, school) -> None:
        with pytest.raises(AuthorizationError):
            TargetAuthorizer(db_session).authorize(ROLE_TEACHER, 42, AllOwnedStudents())

    def test_admin_skips_ownership_but_ids_must_exist(self, db_session, school) -> None:
        authorizer = TargetAuthorizer(db_session)
        authorizer.authorize(ROLE_ADMINISTRATOR, 1, SpecificStudents(frozenset({1, 9})))
        authorizer.authorize(ROLE_ADMINISTRATOR, 1, GradeWide(5))

        with pytest.raises(ValidationError) as exc_info:
            authorizer.authorize(ROLE_ADMINISTRATOR, 1, ClassWide(frozenset({1, 77})))

        assert exc_info.value.code == "UNKNOWN_RECIPIENTS"

    def test_admin_cannot_use_teacher_relative_mode(self, db_session, school) -> None:
        with pytest.raises(AuthorizationError):
            TargetAuthorizer(db_session).authorize(ROLE_ADMINISTRATOR, 1, AllOwnedStudents())

    def test_students_cannot_create(self, db_session, school) -> None:
        with pytest.raises(AuthorizationError):
            TargetAuthorizer(db_session).authorize(ROLE_STUDENT, 1, AllStudents())
