from datetime import timedelta

import pytest
from django.core.cache import cache
from django.utils import timezone
from model_bakery import baker
from rest_framework.test import APIClient

from ClassroomManagementApp.core.choices import UserRole

PASSWORD = "pass1234"
TOKEN_URL = "/api/v1/auth/token/"


@pytest.fixture(autouse=True)
def clear_throttle_cache():
    cache.clear()
    yield
    cache.clear()


def make_user(role, **kwargs):
    u = baker.make("users.User", role=role, **kwargs)
    u.set_password(PASSWORD)
    u.save()
    return u


def login(user):
    client = APIClient()
    token = client.post(TOKEN_URL, {"email": user.email, "password": PASSWORD}, format="json").data["access"]
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")
    return client


@pytest.fixture
def teacher(db):
    return make_user(UserRole.TEACHER)


@pytest.fixture
def other_teacher(db):
    return make_user(UserRole.TEACHER)


@pytest.fixture
def student(db):
    return make_user(UserRole.STUDENT)


@pytest.fixture
def outsider(db):
    """A student who is not enrolled anywhere."""
    return make_user(UserRole.STUDENT)


@pytest.fixture
def classroom(teacher, student):
    from ClassroomManagementApp.domain.services import classroom_service
    room = classroom_service.create_classroom(
        teacher, {"name": "Physics 101", "description": "Mechanics", "subject": "Physics"}
    )
    classroom_service.join_classroom(student, room.class_code)
    return room


@pytest.fixture
def assignment_factory(teacher, classroom):
    """Create (and by default publish) an assignment in the classroom."""
    from ClassroomManagementApp.domain.services import assignment_service

    def _make(publish=True, **overrides):
        data = {
            "title": "Lab report",
            "description": "Write up the pendulum lab",
            "due_date": timezone.now() + timedelta(days=7),
            "total_points": 100,
            "allow_late_submission": True,
            "late_submission_penalty": 5,
        }
        data.update(overrides)
        assignment = assignment_service.create_assignment(teacher, classroom.id, data)
        if publish:
            assignment = assignment_service.publish_assignment(teacher, assignment.id)
        return assignment

    return _make


@pytest.fixture
def assignment(assignment_factory):
    return assignment_factory()
