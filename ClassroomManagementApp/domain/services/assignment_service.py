"""Domain service functions for assignments.

Status moves forward only:
    draft -> published -> closed
`published_at` is stamped on the first publish and never rewritten.
Students only ever see published assignments.
"""
import logging
from typing import Any

from django.db import transaction
from django.db.models import QuerySet
from django.utils import timezone
from rest_framework.exceptions import NotFound, PermissionDenied, ValidationError

from ClassroomManagementApp.classrooms.models import User
from ClassroomManagementApp.core.access import is_assignment_owner, is_member, is_teacher_of
from ClassroomManagementApp.core.choices import AssignmentStatus, UserRole
from ClassroomManagementApp.domain.services.classroom_service import get_classroom_or_404
from ClassroomManagementApp.learning.models import Assignment

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    "title", "description", "instructions", "due_date", "total_points",
    "allow_late_submission", "late_submission_penalty", "attachments",
)


def get_assignment_or_404(assignment_id: Any) -> Assignment:
    assignment = (
        Assignment.objects.select_related("classroom", "teacher").filter(pk=assignment_id).first()
    )
    if assignment is None:
        raise NotFound("Assignment not found")
    return assignment


def _ensure_owner(user: User, assignment: Assignment, action: str) -> None:
    if not is_assignment_owner(assignment, user):
        raise PermissionDenied(f"Only the assignment creator can {action} it")


@transaction.atomic
def create_assignment(teacher: User, classroom_id: Any, data: dict[str, Any]) -> Assignment:
    """Create a draft assignment in a classroom (classroom teacher only)."""
    classroom = get_classroom_or_404(classroom_id)
    if not is_teacher_of(classroom, teacher):
        raise PermissionDenied("Only the classroom teacher can create assignments")
    fields = {key: data[key] for key in EDITABLE_FIELDS if key in data and data[key] is not None}
    assignment = Assignment.objects.create(classroom=classroom, teacher=teacher, **fields)
    logger.info("Assignment %s created in classroom %s", assignment.pk, classroom.pk)
    return assignment


def list_classroom_assignments(user: User, classroom_id: Any) -> QuerySet[Assignment]:
    """Assignments of a classroom, newest first; students see published ones only."""
    classroom = get_classroom_or_404(classroom_id)
    if not is_member(classroom, user):
        raise PermissionDenied("You do not have access to this classroom")
    qs = Assignment.objects.for_classroom(classroom).select_related("teacher", "classroom")
    if user.role == UserRole.STUDENT:
        qs = qs.published()
    return qs.newest_first()


def get_assignment(user: User, assignment_id: Any) -> Assignment:
    assignment = get_assignment_or_404(assignment_id)
    if not is_member(assignment.classroom, user):
        raise PermissionDenied("You do not have access to this assignment")
    if user.role == UserRole.STUDENT and assignment.status != AssignmentStatus.PUBLISHED:
        raise PermissionDenied("This assignment is not published yet")
    return assignment


@transaction.atomic
def update_assignment(user: User, assignment_id: Any, data: dict[str, Any]) -> Assignment:
    """Update editable fields (owner only). Status changes go through publish/close."""
    assignment = get_assignment_or_404(assignment_id)
    _ensure_owner(user, assignment, "update")
    for field in EDITABLE_FIELDS:
        if field in data:
            setattr(assignment, field, data[field])
    assignment.save()
    return assignment


@transaction.atomic
def delete_assignment(user: User, assignment_id: Any) -> None:
    """Delete an assignment together with its submissions (owner only)."""
    assignment = get_assignment_or_404(assignment_id)
    _ensure_owner(user, assignment, "delete")
    logger.info(
        "Assignment %s deleted by user %s (%d submissions removed)",
        assignment.pk, user.pk, assignment.submissions.count(),
    )
    assignment.delete()


@transaction.atomic
def publish_assignment(user: User, assignment_id: Any) -> Assignment:
    """Move a draft to published. Re-publishing is a no-op; closed stays closed."""
    assignment = get_assignment_or_404(assignment_id)
    _ensure_owner(user, assignment, "publish")
    if assignment.status == AssignmentStatus.CLOSED:
        raise ValidationError("A closed assignment cannot be published again")
    if assignment.status == AssignmentStatus.PUBLISHED:
        return assignment
    assignment.status = AssignmentStatus.PUBLISHED
    if assignment.published_at is None:
        assignment.published_at = timezone.now()
    assignment.save(update_fields=["status", "published_at", "updated_at"])
    logger.info("Assignment %s published", assignment.pk)
    return assignment


@transaction.atomic
def close_assignment(user: User, assignment_id: Any) -> Assignment:
    """Move a published assignment to closed; it then accepts no submissions."""
    assignment = get_assignment_or_404(assignment_id)
    _ensure_owner(user, assignment, "close")
    if assignment.status == AssignmentStatus.DRAFT:
        raise ValidationError("Only a published assignment can be closed")
    if assignment.status == AssignmentStatus.CLOSED:
        return assignment
    assignment.status = AssignmentStatus.CLOSED
    assignment.save(update_fields=["status", "updated_at"])
    logger.info("Assignment %s closed", assignment.pk)
    return assignment
