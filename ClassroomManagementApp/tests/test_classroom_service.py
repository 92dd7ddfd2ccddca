import re

import pytest
from rest_framework.exceptions import NotFound, PermissionDenied, ValidationError

from ClassroomManagementApp.classrooms.models import Classroom, Enrollment
from ClassroomManagementApp.classrooms.querysets import ClassroomQuerySet
from ClassroomManagementApp.domain.services import classroom_service
from ClassroomManagementApp.tests.conftest import make_user

pytestmark = pytest.mark.django_db

CODE_RE = re.compile(r"^[A-Z0-9]{6}$")
ROOM = {"name": "Chemistry", "description": "Organic", "subject": "Chemistry"}


def test_generated_codes_have_expected_shape():
    for _ in range(50):
        assert CODE_RE.match(classroom_service.generate_class_code())


def test_codes_are_unique_across_classrooms(teacher):
    rooms = [classroom_service.create_classroom(teacher, ROOM) for _ in range(25)]
    codes = {room.class_code for room in rooms}
    assert len(codes) == 25
    assert all(CODE_RE.match(code) for code in codes)


def test_colliding_code_is_redrawn(teacher, monkeypatch):
    taken = classroom_service.create_classroom(teacher, ROOM).class_code
    candidates = iter([taken, taken, "ZZ9ZZ9"])
    monkeypatch.setattr(classroom_service, "generate_class_code", lambda: next(candidates))
    room = classroom_service.create_classroom(teacher, ROOM)
    assert room.class_code == "ZZ9ZZ9"


def test_code_taken_at_insert_is_redrawn(teacher, monkeypatch):
    taken = classroom_service.create_classroom(teacher, ROOM).class_code
    candidates = iter([taken, "QQ1QQ1"])
    monkeypatch.setattr(classroom_service, "generate_class_code", lambda: next(candidates))
    monkeypatch.setattr(ClassroomQuerySet, "exists", lambda self: False)
    room = classroom_service.create_classroom(teacher, ROOM)
    assert room.class_code == "QQ1QQ1"
    assert Classroom.objects.filter(class_code=taken).count() == 1


def test_gives_up_after_max_attempts(teacher, monkeypatch, settings):
    settings.CLASS_CODE_MAX_ATTEMPTS = 3
    taken = classroom_service.create_classroom(teacher, ROOM).class_code
    calls = []

    def always_taken():
        calls.append(1)
        return taken

    monkeypatch.setattr(classroom_service, "generate_class_code", always_taken)
    with pytest.raises(classroom_service.ClassCodeUnavailable):
        classroom_service.create_classroom(teacher, ROOM)
    assert len(calls) == 3
    assert Classroom.objects.count() == 1


def test_students_cannot_create_classrooms(student):
    with pytest.raises(PermissionDenied):
        classroom_service.create_classroom(student, ROOM)


def test_join_is_case_insensitive(teacher, outsider):
    room = classroom_service.create_classroom(teacher, ROOM)
    joined = classroom_service.join_classroom(outsider, f"  {room.class_code.lower()} ")
    assert joined.pk == room.pk
    assert Enrollment.objects.filter(classroom=room, student=outsider).exists()


def test_join_twice_rejected(classroom, student):
    with pytest.raises(ValidationError, match="already enrolled"):
        classroom_service.join_classroom(student, classroom.class_code)
    assert Enrollment.objects.filter(classroom=classroom, student=student).count() == 1


@pytest.mark.parametrize("code", ["", "   ", None])
def test_join_requires_code(outsider, code):
    with pytest.raises(ValidationError):
        classroom_service.join_classroom(outsider, code)


def test_teacher_with_blank_code_is_forbidden(other_teacher):
    with pytest.raises(PermissionDenied):
        classroom_service.join_classroom(other_teacher, "  ")


def test_join_unknown_code(outsider):
    with pytest.raises(NotFound, match="Invalid class code"):
        classroom_service.join_classroom(outsider, "NOPE00")


def test_teacher_cannot_join(classroom, other_teacher):
    with pytest.raises(PermissionDenied):
        classroom_service.join_classroom(other_teacher, classroom.class_code)


def test_visibility_by_role(teacher, other_teacher, student, outsider, classroom):
    assert list(classroom_service.list_classrooms(teacher)) == [classroom]
    assert list(classroom_service.list_classrooms(student)) == [classroom]
    assert list(classroom_service.list_classrooms(other_teacher)) == []
    assert list(classroom_service.list_classrooms(outsider)) == []
    with pytest.raises(PermissionDenied):
        classroom_service.get_classroom(outsider, classroom.id)


def test_update_by_owner_only(teacher, other_teacher, classroom):
    updated = classroom_service.update_classroom(teacher, classroom.id, {"name": "Physics 102"})
    assert updated.name == "Physics 102"
    assert updated.class_code == classroom.class_code
    with pytest.raises(PermissionDenied):
        classroom_service.update_classroom(other_teacher, classroom.id, {"name": "Hijacked"})


def test_delete_hides_classroom_and_clears_roster(teacher, student, classroom, assignment):
    classroom_service.delete_classroom(teacher, classroom.id)
    classroom.refresh_from_db()
    assert classroom.is_active is False
    assert not Enrollment.objects.filter(classroom=classroom).exists()
    assert classroom.assignments.filter(pk=assignment.pk).exists()
    assert list(classroom_service.list_classrooms(teacher)) == []
    with pytest.raises(NotFound):
        classroom_service.get_classroom(teacher, classroom.id)


def test_leave_classroom(student, classroom):
    classroom_service.leave_classroom(student, classroom.id)
    assert not Enrollment.objects.filter(classroom=classroom, student=student).exists()
    with pytest.raises(ValidationError):
        classroom_service.leave_classroom(student, classroom.id)


def test_roster_in_join_order(teacher, student, outsider, classroom):
    late_joiner = make_user("student")
    classroom_service.join_classroom(late_joiner, classroom.class_code)
    roster = classroom_service.list_students(teacher, classroom.id)
    assert [u.pk for u in roster] == [student.pk, late_joiner.pk]
    with pytest.raises(PermissionDenied):
        classroom_service.list_students(outsider, classroom.id)
