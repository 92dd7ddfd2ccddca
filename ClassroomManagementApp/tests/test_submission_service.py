from datetime import timedelta

import pytest
from django.utils import timezone
from rest_framework.exceptions import NotFound, PermissionDenied, ValidationError

from ClassroomManagementApp.core.choices import SubmissionStatus
from ClassroomManagementApp.domain.services import classroom_service, submission_service
from ClassroomManagementApp.learning.models import Submission
from ClassroomManagementApp.learning.querysets import SubmissionQuerySet
from ClassroomManagementApp.tests.conftest import make_user

pytestmark = pytest.mark.django_db


def submit(student, assignment, **kwargs):
    return submission_service.upsert_submission(student, assignment.id, **kwargs)


def test_new_submission_defaults_to_draft(student, assignment):
    sub, created = submit(student, assignment, content="first draft")
    assert created is True
    assert sub.status == SubmissionStatus.DRAFT
    assert sub.submitted_at is None
    assert sub.classroom_id == assignment.classroom_id


def test_second_call_updates_instead_of_duplicating(student, assignment):
    first, _ = submit(student, assignment, content="v1")
    second, created = submit(student, assignment, content="v2")
    assert created is False
    assert second.id == first.id
    assert Submission.objects.filter(assignment=assignment, student=student).count() == 1
    second.refresh_from_db()
    assert second.content == "v2"


def test_omitted_fields_are_kept(student, assignment):
    attachments = [{"name": "lab.pdf", "url": "https://files.example.com/lab.pdf", "type": "application/pdf", "size": 1200}]
    submit(student, assignment, content="keep me", attachments=attachments)
    sub, _ = submit(student, assignment, status=SubmissionStatus.SUBMITTED)
    assert sub.content == "keep me"
    assert sub.attachments == attachments
    assert sub.status == SubmissionStatus.SUBMITTED


def test_missing_assignment_is_not_found(student):
    with pytest.raises(NotFound):
        submission_service.upsert_submission(student, 999999, content="x")


def test_unpublished_assignment_rejected(student, assignment_factory):
    draft = assignment_factory(publish=False)
    with pytest.raises(ValidationError, match="unpublished"):
        submit(student, draft, content="x")


def test_unpublished_check_runs_before_enrollment(outsider, assignment_factory):
    draft = assignment_factory(publish=False)
    with pytest.raises(ValidationError):
        submit(outsider, draft, content="x")


def test_not_enrolled_student_forbidden(outsider, assignment):
    with pytest.raises(PermissionDenied):
        submit(outsider, assignment, content="x")


def test_past_due_rejected_when_late_not_allowed(student, assignment_factory):
    strict = assignment_factory(allow_late_submission=False)
    with pytest.raises(ValidationError, match="past due date"):
        submit(student, strict, content="x", now=strict.due_date + timedelta(minutes=5))
    assert not Submission.objects.filter(assignment=strict).exists()


def test_late_submission_gets_penalty(student, assignment_factory):
    due = (timezone.now() + timedelta(days=1)).replace(microsecond=0)
    late_ok = assignment_factory(due_date=due, late_submission_penalty=5)
    sub, _ = submit(student, late_ok, status=SubmissionStatus.SUBMITTED, now=due + timedelta(days=3))
    sub.refresh_from_db()
    assert sub.is_late is True
    assert sub.late_by_days == 3
    assert sub.penalty_applied == 15
    assert sub.submitted_at == due + timedelta(days=3)


def test_resubmitting_keeps_original_timestamp(student, assignment):
    first_at = assignment.due_date - timedelta(days=1)
    sub, _ = submit(student, assignment, status=SubmissionStatus.SUBMITTED, now=first_at)
    again, _ = submit(student, assignment, content="fixed a typo", now=assignment.due_date + timedelta(days=2))
    again.refresh_from_db()
    assert again.submitted_at == first_at
    assert again.is_late is False
    assert again.late_by_days == 0
    assert again.penalty_applied == 0


def test_draft_then_submit_stamps_on_transition(student, assignment):
    submit(student, assignment, content="draft")
    at = assignment.due_date - timedelta(hours=1)
    sub, _ = submit(student, assignment, status=SubmissionStatus.SUBMITTED, now=at)
    assert sub.submitted_at == at


def test_student_cannot_set_grading_status(student, assignment):
    with pytest.raises(ValidationError):
        submit(student, assignment, status=SubmissionStatus.GRADED)


@pytest.fixture
def graded_submission(teacher, student, assignment):
    sub, _ = submit(student, assignment, content="answer", status=SubmissionStatus.SUBMITTED)
    return submission_service.grade_submission(teacher, sub.id, grade=80, feedback="Good")


@pytest.mark.parametrize("payload", [
    {"content": "sneaky edit"},
    {"status": SubmissionStatus.DRAFT},
    {"status": SubmissionStatus.SUBMITTED},
    {"attachments": []},
    {},
])
def test_graded_submission_is_locked_for_student(student, assignment, graded_submission, payload):
    with pytest.raises(ValidationError, match="after it has been graded"):
        submit(student, assignment, **payload)
    graded_submission.refresh_from_db()
    assert graded_submission.content == "answer"
    assert graded_submission.status == SubmissionStatus.GRADED


def test_returned_submission_is_locked_for_student(teacher, student, assignment, graded_submission):
    submission_service.return_submission(teacher, graded_submission.id)
    with pytest.raises(ValidationError):
        submit(student, assignment, content="after return")
    with pytest.raises(ValidationError):
        submission_service.delete_submission(student, graded_submission.id)


def test_grading_sets_fields(teacher, graded_submission):
    assert graded_submission.status == SubmissionStatus.GRADED
    assert graded_submission.grade == 80
    assert graded_submission.feedback == "Good"
    assert graded_submission.graded_by_id == teacher.id
    assert graded_submission.graded_at is not None


def test_regrading_keeps_first_graded_at(teacher, graded_submission):
    first_graded_at = graded_submission.graded_at
    regraded = submission_service.grade_submission(
        teacher, graded_submission.id, grade=90, now=first_graded_at + timedelta(hours=1)
    )
    assert regraded.grade == 90
    assert regraded.feedback == "Good"
    assert regraded.graded_at == first_graded_at


def test_grade_above_total_points_rejected(teacher, student, assignment):
    sub, _ = submit(student, assignment, status=SubmissionStatus.SUBMITTED)
    with pytest.raises(ValidationError, match="between 0 and 100"):
        submission_service.grade_submission(teacher, sub.id, grade=101)
    sub.refresh_from_db()
    assert sub.grade is None
    assert sub.status == SubmissionStatus.SUBMITTED
    assert sub.graded_at is None


def test_negative_grade_rejected(teacher, student, assignment):
    sub, _ = submit(student, assignment, status=SubmissionStatus.SUBMITTED)
    with pytest.raises(ValidationError):
        submission_service.grade_submission(teacher, sub.id, grade=-1)


def test_only_assignment_teacher_can_grade(other_teacher, student, assignment):
    sub, _ = submit(student, assignment, status=SubmissionStatus.SUBMITTED)
    with pytest.raises(PermissionDenied):
        submission_service.grade_submission(other_teacher, sub.id, grade=50)


def test_grading_missing_submission_not_found(teacher):
    with pytest.raises(NotFound):
        submission_service.grade_submission(teacher, 424242, grade=10)


def test_return_requires_graded(teacher, student, assignment):
    sub, _ = submit(student, assignment, status=SubmissionStatus.SUBMITTED)
    with pytest.raises(ValidationError):
        submission_service.return_submission(teacher, sub.id)


def test_student_deletes_own_submission(student, assignment):
    sub, _ = submit(student, assignment, content="oops")
    submission_service.delete_submission(student, sub.id)
    assert not assignment.submissions.exists()


def test_cannot_delete_someone_elses_submission(classroom, student, assignment):
    classmate = make_user("student")
    classroom_service.join_classroom(classmate, classroom.class_code)
    sub, _ = submit(student, assignment, content="mine")
    with pytest.raises(PermissionDenied):
        submission_service.delete_submission(classmate, sub.id)


def test_cannot_delete_graded_submission(student, graded_submission):
    with pytest.raises(ValidationError):
        submission_service.delete_submission(student, graded_submission.id)
    assert Submission.objects.filter(pk=graded_submission.pk).exists()


def test_assignment_submissions_latest_first_drafts_last(teacher, classroom, student, assignment):
    others = [make_user("student") for _ in range(2)]
    for other in others:
        classroom_service.join_classroom(other, classroom.class_code)
    base = assignment.due_date - timedelta(days=3)
    submit(student, assignment, content="still drafting")
    early, _ = submit(others[0], assignment, status=SubmissionStatus.SUBMITTED, now=base)
    late, _ = submit(others[1], assignment, status=SubmissionStatus.SUBMITTED, now=base + timedelta(hours=5))

    ordered = list(submission_service.list_assignment_submissions(teacher, assignment.id))
    assert [s.id for s in ordered[:2]] == [late.id, early.id]
    assert ordered[2].student_id == student.id


def test_assignment_submissions_forbidden_for_other_teacher(other_teacher, assignment):
    with pytest.raises(PermissionDenied):
        submission_service.list_assignment_submissions(other_teacher, assignment.id)


def test_student_submissions_visible_to_self_and_teacher(teacher, student, outsider, classroom, assignment):
    submit(student, assignment, content="x")
    assert submission_service.list_student_submissions(student, classroom.id, student.id).count() == 1
    assert submission_service.list_student_submissions(teacher, classroom.id, str(student.id)).count() == 1
    with pytest.raises(PermissionDenied):
        submission_service.list_student_submissions(outsider, classroom.id, student.id)
    with pytest.raises(NotFound):
        submission_service.list_student_submissions(teacher, 987654, student.id)


def test_my_submission_is_scoped_to_caller(student, outsider, assignment):
    submit(student, assignment, content="x")
    assert submission_service.get_my_submission(student, assignment.id).student_id == student.id
    with pytest.raises(NotFound):
        submission_service.get_my_submission(outsider, assignment.id)


def test_get_submission_participants_only(teacher, other_teacher, student, assignment):
    sub, _ = submit(student, assignment, content="x")
    assert submission_service.get_submission(student, sub.id).id == sub.id
    assert submission_service.get_submission(teacher, sub.id).id == sub.id
    with pytest.raises(PermissionDenied):
        submission_service.get_submission(other_teacher, sub.id)


@pytest.fixture
def hide_existing_submission_once(monkeypatch):
    """Make the first lookup miss so the upsert collides with the stored row on insert."""
    original_first = SubmissionQuerySet.first
    calls = []

    def first(self):
        calls.append(1)
        if len(calls) == 1:
            return None
        return original_first(self)

    monkeypatch.setattr(SubmissionQuerySet, "first", first)
    return calls


def test_concurrent_insert_falls_back_to_update(student, assignment, hide_existing_submission_once):
    existing = Submission.objects.create(
        assignment=assignment, student=student, classroom=assignment.classroom, content="from the other request"
    )
    sub, created = submit(student, assignment, status=SubmissionStatus.SUBMITTED)
    assert created is False
    assert sub.pk == existing.pk
    assert sub.content == "from the other request"
    assert sub.status == SubmissionStatus.SUBMITTED
    assert sub.submitted_at is not None
    assert Submission.objects.filter(assignment=assignment, student=student).count() == 1


def test_concurrent_insert_respects_grading_lock(teacher, student, assignment, graded_submission,
                                                 hide_existing_submission_once):
    with pytest.raises(ValidationError, match="after it has been graded"):
        submit(student, assignment, content="sneaky edit")
    graded_submission.refresh_from_db()
    assert graded_submission.content == "answer"
    assert graded_submission.status == SubmissionStatus.GRADED
    assert Submission.objects.filter(assignment=assignment, student=student).count() == 1
