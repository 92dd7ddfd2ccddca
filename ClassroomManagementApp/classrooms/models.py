"""Classroom domain models: Classroom, Enrollment."""

from django.db import models
from django.conf import settings

from simple_history.models import HistoricalRecords

from ClassroomManagementApp.classrooms.querysets import ClassroomQuerySet, EnrollmentQuerySet


User = settings.AUTH_USER_MODEL

CLASS_CODE_LENGTH = 6
CLASS_CODE_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"


class Classroom(models.Model):
    """A classroom owned by one teacher that students join with a class code.

    Fields:
        name / description / subject: Descriptive metadata.
        class_code: Unique 6-character join code ([A-Z0-9]), assigned on creation.
        teacher: FK to the owning teacher.
        students: Enrolled students (through Enrollment).
        is_active: False once the classroom has been deleted by its teacher.
        created_at / updated_at: Timestamps.
        history: Audit history (django-simple-history).
    """
    name = models.CharField(max_length=100)
    description = models.CharField(max_length=500)
    subject = models.CharField(max_length=100)
    class_code = models.CharField(max_length=CLASS_CODE_LENGTH, unique=True, editable=False)
    teacher = models.ForeignKey(User, on_delete=models.PROTECT, related_name="owned_classrooms")
    students = models.ManyToManyField(
        User, through="Enrollment", related_name="enrolled_classrooms", blank=True
    )
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    history = HistoricalRecords()

    objects = ClassroomQuerySet.as_manager()

    def __str__(self) -> str:
        return f"{self.name} [{self.class_code}]"


class Enrollment(models.Model):
    """A student's membership in a classroom.

    Constraints:
        uq_classroom_student: A student is enrolled at most once.
    """
    classroom = models.ForeignKey(Classroom, on_delete=models.CASCADE, related_name="enrollments")
    student = models.ForeignKey(User, on_delete=models.CASCADE, related_name="enrollments")
    joined_at = models.DateTimeField(auto_now_add=True)
    history = HistoricalRecords()

    objects = EnrollmentQuerySet.as_manager()

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["classroom", "student"], name="uq_classroom_student"),
        ]

    def __str__(self) -> str:
        return f"{self.student} -> {self.classroom}"
