"""Class routes for teachers and students."""

from typing import List

from fastapi import APIRouter

from core.access import StudentDep, TeacherDep
from core.dependencies import ClassManagerDep
from schemas.academic import ClassInfo, ClassStudentInfo

router = APIRouter(prefix="/api/classes", tags=["Class"])


@router.get("/mine", response_model=List[ClassInfo], summary="Classes I teach")
def list_my_classes(
    identity: TeacherDep,
    class_manager: ClassManagerDep,
) -> List[ClassInfo]:
    return class_manager.list_classes(teacher_id=identity.id)


@router.get("/mine/enrolled", response_model=List[ClassInfo], summary="Classes I am enrolled in")
def list_enrolled_classes(
    identity: StudentDep,
    class_manager: ClassManagerDep,
) -> List[ClassInfo]:
    return [
        ClassInfo.model_validate(model)
        for model in class_manager.list_classes_for_student(identity.id)
    ]


@router.get("/{class_id}/students", response_model=List[ClassStudentInfo], summary="Class roster")
def list_class_students(
    class_id: int,
    identity: TeacherDep,
    class_manager: ClassManagerDep,
) -> List[ClassStudentInfo]:
    """List the students enrolled in one of the teacher's classes.

    Raises:
        NotFoundError: If the class does not exist.
        AuthorizationError: If another teacher owns the class.
    """
    class_manager.ensure_owner(class_id, identity.id)
    return class_manager.list_class_students(class_id)
