"""Typed enumerations (TextChoices) for user roles, assignment and submission states."""
from django.db import models

class UserRole(models.TextChoices):
    """System-level role assigned to a user account."""
    TEACHER = "teacher", "Teacher"
    STUDENT = "student", "Student"

class AssignmentStatus(models.TextChoices):
    """Lifecycle states for an assignment (forward only)."""
    DRAFT = "draft", "Draft"
    PUBLISHED = "published", "Published"
    CLOSED = "closed", "Closed"

class SubmissionStatus(models.TextChoices):
    """Lifecycle states for a student submission."""
    DRAFT = "draft", "Draft"
    SUBMITTED = "submitted", "Submitted"
    GRADED = "graded", "Graded"
    RETURNED = "returned", "Returned"


# Statuses a student may still edit or delete.
STUDENT_EDITABLE_STATUSES = frozenset({SubmissionStatus.DRAFT, SubmissionStatus.SUBMITTED})
LOCKED_STATUSES = frozenset({SubmissionStatus.GRADED, SubmissionStatus.RETURNED})
