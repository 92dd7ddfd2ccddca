"""Learning domain models: Assignment, Submission."""

from django.db import models
from django.conf import settings
from django.core.validators import MinValueValidator, MaxValueValidator

from ClassroomManagementApp.classrooms.models import Classroom
from ClassroomManagementApp.core.choices import AssignmentStatus, SubmissionStatus
from ClassroomManagementApp.core.validators import validate_attachments
from ClassroomManagementApp.learning.querysets import AssignmentQuerySet, SubmissionQuerySet

from simple_history.models import HistoricalRecords

User = settings.AUTH_USER_MODEL


class Assignment(models.Model):
    """Work set by a classroom's teacher, moving draft -> published -> closed."""
    classroom = models.ForeignKey(Classroom, on_delete=models.PROTECT, related_name="assignments")
    teacher = models.ForeignKey(User, on_delete=models.PROTECT, related_name="created_assignments")
    title = models.CharField(max_length=200)
    description = models.TextField(max_length=2000)
    instructions = models.TextField(max_length=5000, blank=True)
    due_date = models.DateTimeField()
    total_points = models.DecimalField(
        max_digits=8, decimal_places=2, default=100, validators=[MinValueValidator(0)]
    )
    allow_late_submission = models.BooleanField(default=False)
    late_submission_penalty = models.DecimalField(
        max_digits=5, decimal_places=2, default=0,
        validators=[MinValueValidator(0), MaxValueValidator(100)],
        help_text="Points deducted per day late.",
    )
    attachments = models.JSONField(default=list, blank=True, validators=[validate_attachments])
    status = models.CharField(max_length=16, choices=AssignmentStatus.choices, default=AssignmentStatus.DRAFT)
    published_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    history = HistoricalRecords()

    objects = AssignmentQuerySet.as_manager()

    def __str__(self) -> str:
        return f"{self.title} (#{self.pk}, {self.status})"


class Submission(models.Model):
    """A student's work for an assignment (unique per assignment+student).

    Lateness fields (is_late, late_by_days, penalty_applied) are written once,
    when the submission first becomes `submitted`. final_grade and
    grade_percentage are never stored; see domain.services.grading.
    """
    assignment = models.ForeignKey(Assignment, on_delete=models.CASCADE, related_name="submissions")
    student = models.ForeignKey(User, on_delete=models.CASCADE, related_name="submissions")
    classroom = models.ForeignKey(Classroom, on_delete=models.CASCADE, related_name="submissions")
    content = models.TextField(max_length=10000, blank=True)
    attachments = models.JSONField(default=list, blank=True, validators=[validate_attachments])
    status = models.CharField(max_length=16, choices=SubmissionStatus.choices, default=SubmissionStatus.DRAFT)
    submitted_at = models.DateTimeField(null=True, blank=True)
    grade = models.DecimalField(
        max_digits=8, decimal_places=2, null=True, blank=True, validators=[MinValueValidator(0)]
    )
    feedback = models.TextField(max_length=2000, blank=True)
    graded_by = models.ForeignKey(
        User, on_delete=models.SET_NULL, null=True, blank=True, related_name="graded_submissions"
    )
    graded_at = models.DateTimeField(null=True, blank=True)
    is_late = models.BooleanField(default=False)
    late_by_days = models.PositiveIntegerField(default=0)
    penalty_applied = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    history = HistoricalRecords()

    objects = SubmissionQuerySet.as_manager()

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["assignment", "student"], name="uq_assignment_student"),
        ]

    def __str__(self) -> str:
        return f"Submission #{self.pk} ({self.status})"
