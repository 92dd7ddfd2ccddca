"""Custom querysets encapsulating classroom visibility by role."""

from django.db.models import QuerySet
from typing import Self

from ClassroomManagementApp.core.choices import UserRole

class ClassroomQuerySet(QuerySet):
    """QuerySet with helpers for classroom ownership and enrollment."""

    def active(self) -> Self:
        """Classrooms that have not been deleted (deactivated)."""
        return self.filter(is_active=True)

    def for_teacher(self, user) -> Self:
        """Classrooms owned by the given teacher."""
        return self.filter(teacher=user)

    def where_enrolled(self, user) -> Self:
        """Classrooms the user is enrolled in as a student."""
        return self.filter(enrollments__student=user).distinct()

    def visible_to(self, user) -> Self:
        """Active classrooms a user can list:
        - Teacher: owned classrooms
        - Student: enrolled classrooms
        """
        if not user or not user.is_authenticated:
            return self.none()
        if user.role == UserRole.TEACHER:
            return self.active().for_teacher(user)
        return self.active().where_enrolled(user)

    def by_code(self, code: str) -> Self:
        return self.filter(class_code=code.strip().upper())


class EnrollmentQuerySet(QuerySet):
    """QuerySet helpers for roster listing."""

    def roster(self, classroom) -> Self:
        """Enrollments of a classroom in join order."""
        return self.filter(classroom=classroom).select_related("student").order_by("joined_at", "id")
