"""Role & object access helpers.

Pure predicates: they never raise and never write. Services combine them with
existence checks (existence first, authorization second).
"""

from typing import Any

from ClassroomManagementApp.core.choices import UserRole


def _user_id(user: Any) -> Any:
    return getattr(user, "id", None)


def is_teacher_role(user) -> bool:
    return bool(user and getattr(user, "role", None) == UserRole.TEACHER)


def is_student_role(user) -> bool:
    return bool(user and getattr(user, "role", None) == UserRole.STUDENT)


def is_teacher_of(classroom, user) -> bool:
    """User owns the classroom."""
    return bool(user and classroom and classroom.teacher_id == _user_id(user))


def is_enrolled(classroom, user) -> bool:
    """User is on the classroom roster."""
    if not (user and classroom):
        return False
    return classroom.enrollments.filter(student_id=_user_id(user)).exists()


def is_member(classroom, user) -> bool:
    """Teacher of the classroom or an enrolled student."""
    return is_teacher_of(classroom, user) or is_enrolled(classroom, user)


def is_assignment_owner(assignment, user) -> bool:
    return bool(user and assignment and assignment.teacher_id == _user_id(user))


def is_submission_owner(submission, user) -> bool:
    return bool(user and submission and submission.student_id == _user_id(user))


def is_submission_participant(user, submission) -> bool:
    """User wrote the submission or teaches the assignment it belongs to."""
    if submission is None:
        return False
    return is_submission_owner(submission, user) or is_assignment_owner(submission.assignment, user)
