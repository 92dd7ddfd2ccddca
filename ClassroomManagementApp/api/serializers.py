"""Serializers for registration, classrooms, assignments, submissions, grading and uploads."""

from django.contrib.auth import get_user_model
from django.utils import timezone
from rest_framework import serializers

from ClassroomManagementApp.classrooms.models import Classroom
from ClassroomManagementApp.core.choices import SubmissionStatus, UserRole
from ClassroomManagementApp.domain.services import grading
from ClassroomManagementApp.learning.models import Assignment, Submission

User = get_user_model()


class RegistrationSerializer(serializers.ModelSerializer):
    """Serializer handling user registration."""
    password = serializers.CharField(write_only=True, min_length=6, help_text="User password (write-only).")
    username = serializers.CharField(required=False, help_text="Defaults to the email address.")
    role = serializers.ChoiceField(choices=UserRole.choices, default=UserRole.STUDENT)

    class Meta:
        model = User
        fields = ["id", "email", "username", "password", "first_name", "last_name", "role"]

    def validate_username(self, value: str) -> str:
        if User.objects.filter(username=value).exists():
            raise serializers.ValidationError("A user with that username already exists.")
        return value

    def create(self, validated: dict) -> User:
        """Create and return a new user instance."""
        user = User(
            email=validated["email"],
            username=validated.get("username") or validated["email"],
            first_name=validated.get("first_name", ""),
            last_name=validated.get("last_name", ""),
            role=validated["role"],
        )
        user.set_password(validated["password"])
        user.save()
        return user


class UserSerializer(serializers.ModelSerializer):
    """Public, safe representation of a user."""

    class Meta:
        model = User
        fields = ["id", "email", "username", "first_name", "last_name", "role"]


class AttachmentSerializer(serializers.Serializer):
    """Opaque attachment metadata, usually copied from an upload response."""
    name = serializers.CharField(max_length=255)
    url = serializers.CharField(max_length=2048)
    type = serializers.CharField(max_length=255, required=False, allow_blank=True)
    size = serializers.IntegerField(min_value=0, required=False)


class ClassroomWriteSerializer(serializers.ModelSerializer):
    """Serializer for creating/updating a classroom."""

    class Meta:
        model = Classroom
        fields = ["name", "description", "subject"]


class ClassroomReadSerializer(serializers.ModelSerializer):
    """Serializer for reading classroom details including the teacher."""
    teacher = UserSerializer(read_only=True)
    student_count = serializers.SerializerMethodField()

    class Meta:
        model = Classroom
        fields = [
            "id", "name", "description", "subject", "class_code", "teacher",
            "student_count", "is_active", "created_at", "updated_at",
        ]

    def get_student_count(self, obj: Classroom) -> int:
        return obj.enrollments.count()


class JoinClassroomSerializer(serializers.Serializer):
    class_code = serializers.CharField(max_length=16)


class AssignmentWriteSerializer(serializers.ModelSerializer):
    """Serializer for creating/updating an assignment (status is not writable)."""
    attachments = AttachmentSerializer(many=True, required=False)

    class Meta:
        model = Assignment
        fields = [
            "title", "description", "instructions", "due_date", "total_points",
            "allow_late_submission", "late_submission_penalty", "attachments",
        ]
        extra_kwargs = {
            "late_submission_penalty": {"help_text": "Points deducted per day late (0-100)."},
        }


class AssignmentMiniSerializer(serializers.ModelSerializer):
    """Compact assignment representation embedded in submissions."""

    class Meta:
        model = Assignment
        fields = ["id", "title", "due_date", "total_points"]


class AssignmentReadSerializer(serializers.ModelSerializer):
    """Assignment details plus computed due-date helpers."""
    teacher = UserSerializer(read_only=True)
    is_overdue = serializers.SerializerMethodField()
    days_until_due = serializers.SerializerMethodField()

    class Meta:
        model = Assignment
        fields = [
            "id", "classroom", "teacher", "title", "description", "instructions",
            "due_date", "total_points", "allow_late_submission", "late_submission_penalty",
            "attachments", "status", "published_at", "is_overdue", "days_until_due",
            "created_at", "updated_at",
        ]

    def get_is_overdue(self, obj: Assignment) -> bool:
        return grading.is_overdue(obj, timezone.now())

    def get_days_until_due(self, obj: Assignment) -> int:
        return grading.days_until_due(obj, timezone.now())


class SubmissionWriteSerializer(serializers.Serializer):
    """Body of the submission upsert. Omitted fields keep their stored values."""
    assignment = serializers.IntegerField()
    content = serializers.CharField(max_length=10000, required=False, allow_blank=True)
    attachments = AttachmentSerializer(many=True, required=False)
    status = serializers.ChoiceField(
        choices=[SubmissionStatus.DRAFT, SubmissionStatus.SUBMITTED],
        required=False,
        help_text="draft or submitted; new submissions default to draft.",
    )


class SubmissionReadSerializer(serializers.ModelSerializer):
    """Detailed submission view including derived final grade."""
    assignment = AssignmentMiniSerializer(read_only=True)
    student = UserSerializer(read_only=True)
    graded_by = UserSerializer(read_only=True)
    final_grade = serializers.SerializerMethodField()
    grade_percentage = serializers.SerializerMethodField()

    class Meta:
        model = Submission
        fields = [
            "id", "assignment", "student", "classroom", "content", "attachments", "status",
            "submitted_at", "grade", "feedback", "graded_by", "graded_at", "is_late",
            "late_by_days", "penalty_applied", "final_grade", "grade_percentage",
            "created_at", "updated_at",
        ]
        read_only_fields = fields

    def get_final_grade(self, obj: Submission):
        value = grading.final_grade(obj.grade, obj.penalty_applied)
        return None if value is None else float(value)

    def get_grade_percentage(self, obj: Submission) -> int | None:
        return grading.grade_percentage(obj.grade, obj.penalty_applied, obj.assignment.total_points)


class GradeSerializer(serializers.Serializer):
    """Body for grading; the upper bound is checked against the assignment's points."""
    grade = serializers.DecimalField(max_digits=8, decimal_places=2, required=False, allow_null=True)
    feedback = serializers.CharField(max_length=2000, required=False, allow_blank=True)


class UploadSerializer(serializers.Serializer):
    file = serializers.FileField()


class MultiUploadSerializer(serializers.Serializer):
    """Schema for the multi-file upload; count limits are enforced by the upload service."""
    files = serializers.ListField(child=serializers.FileField(), required=False)
