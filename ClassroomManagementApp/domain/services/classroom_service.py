"""Domain service functions for classroom lifecycle and enrollment.

These helpers encapsulate the membership rules (only teachers create and
manage classrooms, students join with a class code) and keep the view and
serializer layers thin. Mutating operations run inside atomic transactions.
"""
import logging
import secrets
from typing import Any

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import QuerySet
from rest_framework.exceptions import APIException, NotFound, PermissionDenied, ValidationError

from ClassroomManagementApp.classrooms.models import (
    CLASS_CODE_ALPHABET, CLASS_CODE_LENGTH, Classroom, Enrollment, User
)
from ClassroomManagementApp.core.access import (
    is_enrolled, is_member, is_student_role, is_teacher_of, is_teacher_role
)

logger = logging.getLogger(__name__)

DEFAULT_CLASS_CODE_ATTEMPTS = 20


class ClassCodeUnavailable(APIException):
    """No collision-free class code was found within the retry budget."""
    status_code = 500
    default_detail = "Could not allocate a unique class code."
    default_code = "class_code_unavailable"


def generate_class_code() -> str:
    """Random 6-character code drawn from A-Z and 0-9."""
    return "".join(secrets.choice(CLASS_CODE_ALPHABET) for _ in range(CLASS_CODE_LENGTH))


def get_classroom_or_404(classroom_id: Any) -> Classroom:
    classroom = Classroom.objects.active().select_related("teacher").filter(pk=classroom_id).first()
    if classroom is None:
        raise NotFound("Classroom not found")
    return classroom


def _ensure_owner(user: User, classroom: Classroom, action: str) -> None:
    if not is_teacher_of(classroom, user):
        raise PermissionDenied(f"Only the classroom teacher can {action} it")


def _ensure_member(user: User, classroom: Classroom) -> None:
    if not is_member(classroom, user):
        raise PermissionDenied("You do not have access to this classroom")


@transaction.atomic
def create_classroom(teacher: User, data: dict[str, Any]) -> Classroom:
    """Create a classroom owned by `teacher` with a fresh unique class code.

    A candidate code is checked for uniqueness before insert; the unique
    index on `class_code` still guards against a concurrent insert of the
    same code, in which case a new candidate is drawn.

    Raises:
        PermissionDenied: If the user is not a teacher.
        ClassCodeUnavailable: If every attempt collided.
    """
    if not is_teacher_role(teacher):
        raise PermissionDenied("Only teachers can create classrooms")
    attempts = getattr(settings, "CLASS_CODE_MAX_ATTEMPTS", DEFAULT_CLASS_CODE_ATTEMPTS)
    for _ in range(attempts):
        code = generate_class_code()
        if Classroom.objects.filter(class_code=code).exists():
            continue
        try:
            with transaction.atomic():
                classroom = Classroom.objects.create(teacher=teacher, class_code=code, **data)
        except IntegrityError:
            logger.warning("Class code %s collided on insert, retrying", code)
            continue
        logger.info("Classroom %s created by user %s with code %s", classroom.pk, teacher.pk, code)
        return classroom
    logger.error("Gave up allocating a class code after %d attempts", attempts)
    raise ClassCodeUnavailable()


def list_classrooms(user: User) -> QuerySet[Classroom]:
    """Owned classrooms for teachers, enrolled classrooms for students."""
    return Classroom.objects.visible_to(user).select_related("teacher").order_by("-created_at", "-id")


def get_classroom(user: User, classroom_id: Any) -> Classroom:
    classroom = get_classroom_or_404(classroom_id)
    _ensure_member(user, classroom)
    return classroom


@transaction.atomic
def update_classroom(user: User, classroom_id: Any, data: dict[str, Any]) -> Classroom:
    """Update descriptive fields (teacher only). Code, owner and roster are not writable."""
    classroom = get_classroom_or_404(classroom_id)
    _ensure_owner(user, classroom, "update")
    for field in ("name", "description", "subject"):
        if field in data:
            setattr(classroom, field, data[field])
    classroom.save()
    return classroom


@transaction.atomic
def delete_classroom(user: User, classroom_id: Any) -> None:
    """Deactivate a classroom and drop its roster.

    Assignments and submissions are kept; the classroom simply stops being
    reachable.
    """
    classroom = get_classroom_or_404(classroom_id)
    _ensure_owner(user, classroom, "delete")
    Enrollment.objects.filter(classroom=classroom).delete()
    classroom.is_active = False
    classroom.save(update_fields=["is_active", "updated_at"])
    logger.info("Classroom %s deleted by user %s", classroom.pk, user.pk)


@transaction.atomic
def join_classroom(student: User, class_code: str) -> Classroom:
    """Enroll a student using a class code (case-insensitive).

    Raises:
        ValidationError: Missing code, already enrolled, or caller teaches it.
        NotFound: Unknown code.
        PermissionDenied: Caller is not a student.
    """
    if not is_student_role(student):
        raise PermissionDenied("Only students can join classrooms")
    if not class_code or not class_code.strip():
        raise ValidationError("Please provide a class code")
    classroom = Classroom.objects.active().by_code(class_code).select_for_update().first()
    if classroom is None:
        raise NotFound("Invalid class code")
    if is_teacher_of(classroom, student):
        raise ValidationError("You are the teacher of this classroom")
    if is_enrolled(classroom, student):
        raise ValidationError("You are already enrolled in this classroom")
    try:
        with transaction.atomic():
            Enrollment.objects.create(classroom=classroom, student=student)
    except IntegrityError:
        raise ValidationError("You are already enrolled in this classroom")
    logger.info("User %s joined classroom %s", student.pk, classroom.pk)
    return classroom


@transaction.atomic
def leave_classroom(student: User, classroom_id: Any) -> None:
    classroom = get_classroom_or_404(classroom_id)
    deleted, _ = Enrollment.objects.filter(classroom=classroom, student=student).delete()
    if not deleted:
        raise ValidationError("You are not enrolled in this classroom")
    logger.info("User %s left classroom %s", student.pk, classroom.pk)


def list_students(user: User, classroom_id: Any) -> list[User]:
    """Roster in join order (members only)."""
    classroom = get_classroom(user, classroom_id)
    return [enrollment.student for enrollment in Enrollment.objects.roster(classroom)]
