"""Custom DRF permission classes gating endpoints by account role.

Object-level rules (ownership, enrollment) live in the domain services so the
existence check always runs before the authorization check.
"""

from typing import Any

from rest_framework.permissions import BasePermission
from rest_framework.request import Request

from ClassroomManagementApp.core.access import is_student_role, is_teacher_role


class IsTeacher(BasePermission):
    """Allow only authenticated teacher accounts."""
    message = "Only teachers can perform this action"

    def has_permission(self, request: Request, view: Any) -> bool:
        return bool(request.user and request.user.is_authenticated and is_teacher_role(request.user))


class IsStudent(BasePermission):
    """Allow only authenticated student accounts."""
    message = "Only students can perform this action"

    def has_permission(self, request: Request, view: Any) -> bool:
        return bool(request.user and request.user.is_authenticated and is_student_role(request.user))
