"""Domain service functions for the submission lifecycle and grading.

Submission states:
    draft <-> submitted -> graded -> returned
Students create and edit their own submission while it is draft or
submitted; once graded (or returned) it is locked for them. Teachers of the
assignment grade, re-grade and return.

Every operation checks, in order: the referenced object exists (NotFound),
the caller may act on it (PermissionDenied), the business rules hold
(ValidationError). Nothing is written before all checks pass.
"""
import logging
from datetime import datetime
from decimal import Decimal
from typing import Any

from django.db import IntegrityError, transaction
from django.db.models import QuerySet
from django.utils import timezone
from rest_framework.exceptions import NotFound, PermissionDenied, ValidationError

from ClassroomManagementApp.classrooms.models import User
from ClassroomManagementApp.core.access import (
    is_assignment_owner, is_enrolled, is_submission_owner, is_submission_participant, is_teacher_of
)
from ClassroomManagementApp.core.choices import (
    AssignmentStatus, LOCKED_STATUSES, STUDENT_EDITABLE_STATUSES, SubmissionStatus
)
from ClassroomManagementApp.domain.services.assignment_service import get_assignment_or_404
from ClassroomManagementApp.domain.services.classroom_service import get_classroom_or_404
from ClassroomManagementApp.domain.services.grading import derive_on_submit
from ClassroomManagementApp.learning.models import Assignment, Submission

logger = logging.getLogger(__name__)


def _format_points(value: Any) -> str:
    return f"{Decimal(str(value)).normalize():f}"


def get_submission_or_404(submission_id: Any, for_update: bool = False) -> Submission:
    qs = Submission.objects.with_related()
    if for_update:
        qs = qs.select_for_update(of=("self",))
    submission = qs.filter(pk=submission_id).first()
    if submission is None:
        raise NotFound("Submission not found")
    return submission


def _ensure_can_submit(student: User, assignment: Assignment, now: datetime) -> None:
    if assignment.status != AssignmentStatus.PUBLISHED:
        raise ValidationError("Cannot submit to unpublished assignment")
    if not is_enrolled(assignment.classroom, student):
        raise PermissionDenied("You are not enrolled in this classroom")
    if not assignment.allow_late_submission and now > assignment.due_date:
        raise ValidationError("This assignment no longer accepts submissions (past due date)")


def _apply_changes(
    submission: Submission,
    content: str | None,
    attachments: list[dict] | None,
    status: str | None,
) -> None:
    if content is not None:
        submission.content = content
    if attachments is not None:
        submission.attachments = attachments
    if status is not None:
        submission.status = status


@transaction.atomic
def upsert_submission(
    student: User,
    assignment_id: Any,
    content: str | None = None,
    attachments: list[dict] | None = None,
    status: str | None = None,
    now: datetime | None = None,
) -> tuple[Submission, bool]:
    """Create or update the caller's submission for an assignment.

    Only fields that are provided (not None) overwrite stored values. A new
    submission defaults to `draft`. The first move into `submitted` stamps
    `submitted_at` and the lateness fields via `derive_on_submit`.

    Returns:
        (submission, created)

    Raises:
        NotFound: Assignment missing.
        ValidationError: Unpublished assignment, past due without late
            submissions, invalid status, or submission already graded.
        PermissionDenied: Student not enrolled in the classroom.
    """
    assignment = get_assignment_or_404(assignment_id)
    now = now or timezone.now()
    _ensure_can_submit(student, assignment, now)
    if status is not None and status not in STUDENT_EDITABLE_STATUSES:
        raise ValidationError(f"Status must be one of: {', '.join(sorted(STUDENT_EDITABLE_STATUSES))}")

    submission = (
        Submission.objects.select_for_update()
        .filter(assignment=assignment, student=student)
        .first()
    )
    created = submission is None
    if created:
        submission = Submission(
            assignment=assignment,
            student=student,
            classroom_id=assignment.classroom_id,
            status=SubmissionStatus.DRAFT,
        )
        _apply_changes(submission, content, attachments, status)
        derive_on_submit(submission, assignment, now)
        try:
            with transaction.atomic():
                submission.save()
        except IntegrityError:
            # A concurrent request inserted the same (assignment, student) row first.
            submission = Submission.objects.select_for_update().get(assignment=assignment, student=student)
            created = False

    if not created:
        if submission.status in LOCKED_STATUSES:
            raise ValidationError("Cannot modify submission after it has been graded")
        _apply_changes(submission, content, attachments, status)
        derive_on_submit(submission, assignment, now)
        submission.save()

    logger.info(
        "Submission %s %s by user %s for assignment %s (status=%s, late=%s)",
        submission.pk, "created" if created else "updated", student.pk,
        assignment.pk, submission.status, submission.is_late,
    )
    return submission, created


@transaction.atomic
def grade_submission(
    teacher: User,
    submission_id: Any,
    grade: Any = None,
    feedback: str | None = None,
    now: datetime | None = None,
) -> Submission:
    """Grade (or re-grade) a submission (assignment teacher only).

    Validates:
        0 <= grade <= assignment.total_points when a grade is given.
    Sets status to graded; graded_at is stamped on the first grading only.
    """
    submission = get_submission_or_404(submission_id, for_update=True)
    assignment = submission.assignment
    if not is_assignment_owner(assignment, teacher):
        raise PermissionDenied("Only the assignment teacher can grade submissions")
    if grade is not None:
        value = Decimal(str(grade))
        if value < 0 or value > assignment.total_points:
            raise ValidationError(f"Grade must be between 0 and {_format_points(assignment.total_points)}")
        submission.grade = value
    if feedback is not None:
        submission.feedback = feedback
    submission.graded_by = teacher
    submission.status = SubmissionStatus.GRADED
    if submission.graded_at is None:
        submission.graded_at = now or timezone.now()
    submission.save()
    logger.info("Submission %s graded by user %s (grade=%s)", submission.pk, teacher.pk, submission.grade)
    return submission


@transaction.atomic
def return_submission(teacher: User, submission_id: Any) -> Submission:
    """Hand a graded submission back to the student (assignment teacher only)."""
    submission = get_submission_or_404(submission_id, for_update=True)
    if not is_assignment_owner(submission.assignment, teacher):
        raise PermissionDenied("Only the assignment teacher can return submissions")
    if submission.status != SubmissionStatus.GRADED:
        raise ValidationError("Only graded submissions can be returned")
    submission.status = SubmissionStatus.RETURNED
    submission.save(update_fields=["status", "updated_at"])
    logger.info("Submission %s returned", submission.pk)
    return submission


@transaction.atomic
def delete_submission(student: User, submission_id: Any) -> None:
    """Delete the caller's own submission while it is still editable.

    The assignment's submission list is a reverse query, so removing the row
    also detaches it from the assignment in the same transaction.
    """
    submission = get_submission_or_404(submission_id, for_update=True)
    if not is_submission_owner(submission, student):
        raise PermissionDenied("You can only delete your own submissions")
    if submission.status not in STUDENT_EDITABLE_STATUSES:
        raise ValidationError("Cannot delete submission after it has been graded")
    pk = submission.pk
    submission.delete()
    logger.info("Submission %s deleted by user %s", pk, student.pk)


def list_assignment_submissions(teacher: User, assignment_id: Any) -> QuerySet[Submission]:
    """All submissions of an assignment, latest submitted first (assignment teacher only)."""
    assignment = get_assignment_or_404(assignment_id)
    if not is_assignment_owner(assignment, teacher):
        raise PermissionDenied("Only the assignment teacher can view submissions")
    return Submission.objects.with_related().for_assignment(assignment).latest_submitted_first()


def list_student_submissions(user: User, classroom_id: Any, student_id: Any) -> QuerySet[Submission]:
    """A student's submissions within a classroom (classroom teacher or the student)."""
    classroom = get_classroom_or_404(classroom_id)
    if not (is_teacher_of(classroom, user) or str(user.pk) == str(student_id)):
        raise PermissionDenied("You do not have permission to view these submissions")
    return (
        Submission.objects.with_related()
        .for_student_in_classroom(classroom, student_id)
        .latest_submitted_first()
    )


def get_my_submission(student: User, assignment_id: Any) -> Submission:
    """The caller's own submission for an assignment."""
    submission = (
        Submission.objects.with_related().filter(assignment_id=assignment_id, student=student).first()
    )
    if submission is None:
        raise NotFound("No submission found for this assignment")
    return submission


def get_submission(user: User, submission_id: Any) -> Submission:
    submission = get_submission_or_404(submission_id)
    if not is_submission_participant(user, submission):
        raise PermissionDenied("You do not have access to this submission")
    return submission
