"""Custom querysets for assignment visibility and submission listing."""

from django.db.models import F, QuerySet
from typing import Self

from ClassroomManagementApp.core.choices import AssignmentStatus


class AssignmentQuerySet(QuerySet):
    """QuerySet helpers for assignment visibility."""

    def published(self) -> Self:
        return self.filter(status=AssignmentStatus.PUBLISHED)

    def for_classroom(self, classroom) -> Self:
        return self.filter(classroom=classroom)

    def newest_first(self) -> Self:
        return self.order_by("-created_at", "-id")


class SubmissionQuerySet(QuerySet):
    """QuerySet helpers for filtering and ordering submissions."""

    def with_related(self) -> Self:
        return self.select_related("assignment", "student", "graded_by", "classroom")

    def for_assignment(self, assignment) -> Self:
        """All submissions of one assignment."""
        return self.filter(assignment=assignment)

    def for_student_in_classroom(self, classroom, student_id) -> Self:
        """Submissions of one student within one classroom."""
        return self.filter(classroom=classroom, student_id=student_id)

    def latest_submitted_first(self) -> Self:
        """Order by submitted_at descending; drafts (no submitted_at) last."""
        return self.order_by(F("submitted_at").desc(nulls_last=True), "-updated_at", "-id")
