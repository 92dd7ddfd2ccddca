"""REST API views for authentication, classrooms, assignments, submissions and uploads.

Views stay thin: they validate request bodies with serializers, delegate to
the domain services, and wrap results in the `{success: true, ...}` envelope.
Failures raised by the services are rendered by core.exceptions.
"""

from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.parsers import FormParser, MultiPartParser
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from drf_spectacular.utils import (
    extend_schema,
    extend_schema_view,
    OpenApiResponse,
    OpenApiParameter,
)

from ClassroomManagementApp.api.mixins import EnvelopeMixin
from ClassroomManagementApp.api.throttles import SubmissionRateThrottle
from ClassroomManagementApp.core.permissions import IsStudent, IsTeacher
from ClassroomManagementApp.domain.services import (
    assignment_service,
    classroom_service,
    submission_service,
    upload_service,
)
from ClassroomManagementApp.api.serializers import (
    RegistrationSerializer,
    UserSerializer,
    ClassroomWriteSerializer,
    ClassroomReadSerializer,
    JoinClassroomSerializer,
    AssignmentWriteSerializer,
    AssignmentReadSerializer,
    SubmissionWriteSerializer,
    SubmissionReadSerializer,
    GradeSerializer,
    UploadSerializer,
    MultiUploadSerializer,
)

AUTH_RESPONSES = {
    401: OpenApiResponse(description="Authentication required."),
    403: OpenApiResponse(description="Forbidden"),
    404: OpenApiResponse(description="Not Found"),
}

VALIDATION_RESPONSE = {
    400: OpenApiResponse(description="Business rule or validation failed."),
}


# ---------- Auth ----------
@extend_schema(
    tags=["Auth"],
    request=RegistrationSerializer,
    responses={201: UserSerializer, **VALIDATION_RESPONSE},
    description="Register a new teacher or student account."
)
class RegistrationView(EnvelopeMixin, APIView):
    """User registration endpoint."""
    permission_classes = [AllowAny]

    def post(self, request: Request) -> Response:
        ser = RegistrationSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        user = ser.save()
        return self.respond("Account created successfully", status.HTTP_201_CREATED, user=UserSerializer(user).data)


@extend_schema(tags=["Auth"], responses={200: UserSerializer, **AUTH_RESPONSES})
class MeView(EnvelopeMixin, APIView):
    """Identity of the authenticated caller."""
    permission_classes = [IsAuthenticated]

    def get(self, request: Request) -> Response:
        return self.respond(user=UserSerializer(request.user).data)


# ---------- Classrooms ----------
@extend_schema_view(
    list=extend_schema(tags=["Classrooms"], responses={200: ClassroomReadSerializer(many=True), **AUTH_RESPONSES}),
    retrieve=extend_schema(tags=["Classrooms"], responses={200: ClassroomReadSerializer, **AUTH_RESPONSES}),
    create=extend_schema(
        tags=["Classrooms"],
        request=ClassroomWriteSerializer,
        responses={201: ClassroomReadSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions={"x-permissions": {"required_roles": ["teacher"], "ownership": "owner-on-create"}},
    ),
    update=extend_schema(
        tags=["Classrooms"],
        request=ClassroomWriteSerializer,
        responses={200: ClassroomReadSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions={"x-permissions": {"required_roles": ["teacher"], "ownership": "owner"}},
    ),
    partial_update=extend_schema(
        tags=["Classrooms"],
        request=ClassroomWriteSerializer,
        responses={200: ClassroomReadSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions={"x-permissions": {"required_roles": ["teacher"], "ownership": "owner"}},
    ),
    destroy=extend_schema(
        tags=["Classrooms"],
        responses={200: OpenApiResponse(description="Deleted"), **AUTH_RESPONSES},
        extensions={"x-permissions": {"required_roles": ["teacher"], "ownership": "owner"}},
    ),
    join=extend_schema(
        tags=["Membership"],
        request=JoinClassroomSerializer,
        responses={200: ClassroomReadSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions={"x-permissions": {"required_roles": ["student"], "ownership": "self"}},
    ),
    leave=extend_schema(
        tags=["Membership"],
        request=None,
        responses={200: OpenApiResponse(description="Left classroom"), **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions={"x-permissions": {"required_roles": ["student"], "ownership": "self"}},
    ),
)
class ClassroomViewSet(EnvelopeMixin, viewsets.ViewSet):
    """CRUD and enrollment for classrooms."""
    permission_classes = [IsAuthenticated]

    def get_permissions(self) -> list:
        if self.action in ("create", "update", "partial_update", "destroy"):
            return [IsAuthenticated(), IsTeacher()]
        if self.action in ("join", "leave"):
            return [IsAuthenticated(), IsStudent()]
        return [IsAuthenticated()]

    def list(self, request: Request) -> Response:
        """List classrooms the caller owns (teacher) or is enrolled in (student)."""
        qs = classroom_service.list_classrooms(request.user)
        return self.list_response("classrooms", qs, ClassroomReadSerializer)

    def create(self, request: Request) -> Response:
        ser = ClassroomWriteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        classroom = classroom_service.create_classroom(request.user, ser.validated_data)
        return self.respond(
            "Classroom created successfully", status.HTTP_201_CREATED,
            classroom=ClassroomReadSerializer(classroom).data,
        )

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        classroom = classroom_service.get_classroom(request.user, pk)
        return self.respond(classroom=ClassroomReadSerializer(classroom).data)

    def update(self, request: Request, pk: str | None = None, partial: bool = False) -> Response:
        ser = ClassroomWriteSerializer(data=request.data, partial=partial)
        ser.is_valid(raise_exception=True)
        classroom = classroom_service.update_classroom(request.user, pk, ser.validated_data)
        return self.respond("Classroom updated successfully", classroom=ClassroomReadSerializer(classroom).data)

    def partial_update(self, request: Request, pk: str | None = None) -> Response:
        return self.update(request, pk, partial=True)

    def destroy(self, request: Request, pk: str | None = None) -> Response:
        classroom_service.delete_classroom(request.user, pk)
        return self.respond("Classroom deleted successfully")

    @action(detail=False, methods=["post"], url_path="join")
    def join(self, request: Request) -> Response:
        """Join a classroom with its class code."""
        ser = JoinClassroomSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        classroom = classroom_service.join_classroom(request.user, ser.validated_data["class_code"])
        return self.respond("Successfully joined classroom", classroom=ClassroomReadSerializer(classroom).data)

    @action(detail=True, methods=["post"], url_path="leave")
    def leave(self, request: Request, pk: str | None = None) -> Response:
        classroom_service.leave_classroom(request.user, pk)
        return self.respond("Successfully left classroom")


@extend_schema(parameters=[OpenApiParameter("classroom_pk", int, OpenApiParameter.PATH)])
@extend_schema_view(
    list=extend_schema(tags=["Assignments"], responses={200: AssignmentReadSerializer(many=True), **AUTH_RESPONSES}),
    create=extend_schema(
        tags=["Assignments"],
        request=AssignmentWriteSerializer,
        responses={201: AssignmentReadSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions={"x-permissions": {"required_roles": ["teacher"], "ownership": "classroom-teacher"}},
    ),
)
class ClassroomAssignmentViewSet(EnvelopeMixin, viewsets.ViewSet):
    """Assignments nested under a classroom."""

    def get_permissions(self) -> list:
        if self.action == "create":
            return [IsAuthenticated(), IsTeacher()]
        return [IsAuthenticated()]

    def list(self, request: Request, classroom_pk: str | None = None) -> Response:
        """Students only see published assignments."""
        qs = assignment_service.list_classroom_assignments(request.user, classroom_pk)
        return self.list_response("assignments", qs, AssignmentReadSerializer)

    def create(self, request: Request, classroom_pk: str | None = None) -> Response:
        ser = AssignmentWriteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        assignment = assignment_service.create_assignment(request.user, classroom_pk, ser.validated_data)
        return self.respond(
            "Assignment created successfully", status.HTTP_201_CREATED,
            assignment=AssignmentReadSerializer(assignment).data,
        )


@extend_schema(parameters=[OpenApiParameter("classroom_pk", int, OpenApiParameter.PATH)])
@extend_schema_view(
    list=extend_schema(tags=["Membership"], responses={200: UserSerializer(many=True), **AUTH_RESPONSES}),
    submissions=extend_schema(
        tags=["Submissions"],
        responses={200: SubmissionReadSerializer(many=True), **AUTH_RESPONSES},
        extensions={"x-permissions": {"required_roles": ["teacher", "student"], "ownership": "classroom-teacher-or-self"}},
    ),
)
class ClassroomStudentViewSet(EnvelopeMixin, viewsets.ViewSet):
    """Classroom roster and per-student submission history."""
    permission_classes = [IsAuthenticated]

    def list(self, request: Request, classroom_pk: str | None = None) -> Response:
        students = classroom_service.list_students(request.user, classroom_pk)
        return self.list_response("students", students, UserSerializer)

    @action(detail=True, methods=["get"], url_path="submissions")
    def submissions(self, request: Request, classroom_pk: str | None = None, pk: str | None = None) -> Response:
        qs = submission_service.list_student_submissions(request.user, classroom_pk, pk)
        return self.list_response("submissions", qs, SubmissionReadSerializer)


# ---------- Assignments ----------
@extend_schema_view(
    retrieve=extend_schema(tags=["Assignments"], responses={200: AssignmentReadSerializer, **AUTH_RESPONSES}),
    update=extend_schema(
        tags=["Assignments"],
        request=AssignmentWriteSerializer,
        responses={200: AssignmentReadSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions={"x-permissions": {"required_roles": ["teacher"], "ownership": "owner"}},
    ),
    partial_update=extend_schema(
        tags=["Assignments"],
        request=AssignmentWriteSerializer,
        responses={200: AssignmentReadSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions={"x-permissions": {"required_roles": ["teacher"], "ownership": "owner"}},
    ),
    destroy=extend_schema(
        tags=["Assignments"],
        responses={200: OpenApiResponse(description="Deleted"), **AUTH_RESPONSES},
        extensions={"x-permissions": {"required_roles": ["teacher"], "ownership": "owner"}},
    ),
    publish=extend_schema(
        tags=["Assignments"], request=None,
        responses={200: AssignmentReadSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
    ),
    close=extend_schema(
        tags=["Assignments"], request=None,
        responses={200: AssignmentReadSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
    ),
    submissions=extend_schema(
        tags=["Submissions"],
        responses={200: SubmissionReadSerializer(many=True), **AUTH_RESPONSES},
        extensions={"x-permissions": {"required_roles": ["teacher"], "ownership": "owner"}},
    ),
    my_submission=extend_schema(
        tags=["Submissions"],
        responses={200: SubmissionReadSerializer, **AUTH_RESPONSES},
        extensions={"x-permissions": {"required_roles": ["student"], "ownership": "self"}},
    ),
)
class AssignmentViewSet(EnvelopeMixin, viewsets.ViewSet):
    """Assignment detail, lifecycle transitions and submission listings."""

    def get_permissions(self) -> list:
        if self.action in ("update", "partial_update", "destroy", "publish", "close", "submissions"):
            return [IsAuthenticated(), IsTeacher()]
        if self.action == "my_submission":
            return [IsAuthenticated(), IsStudent()]
        return [IsAuthenticated()]

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        assignment = assignment_service.get_assignment(request.user, pk)
        return self.respond(assignment=AssignmentReadSerializer(assignment).data)

    def update(self, request: Request, pk: str | None = None, partial: bool = False) -> Response:
        ser = AssignmentWriteSerializer(data=request.data, partial=partial)
        ser.is_valid(raise_exception=True)
        assignment = assignment_service.update_assignment(request.user, pk, ser.validated_data)
        return self.respond("Assignment updated successfully", assignment=AssignmentReadSerializer(assignment).data)

    def partial_update(self, request: Request, pk: str | None = None) -> Response:
        return self.update(request, pk, partial=True)

    def destroy(self, request: Request, pk: str | None = None) -> Response:
        assignment_service.delete_assignment(request.user, pk)
        return self.respond("Assignment deleted successfully")

    @action(detail=True, methods=["put"], url_path="publish")
    def publish(self, request: Request, pk: str | None = None) -> Response:
        assignment = assignment_service.publish_assignment(request.user, pk)
        return self.respond("Assignment published successfully", assignment=AssignmentReadSerializer(assignment).data)

    @action(detail=True, methods=["put"], url_path="close")
    def close(self, request: Request, pk: str | None = None) -> Response:
        assignment = assignment_service.close_assignment(request.user, pk)
        return self.respond("Assignment closed successfully", assignment=AssignmentReadSerializer(assignment).data)

    @action(detail=True, methods=["get"], url_path="submissions")
    def submissions(self, request: Request, pk: str | None = None) -> Response:
        """All submissions for the assignment, latest submitted first."""
        qs = submission_service.list_assignment_submissions(request.user, pk)
        return self.list_response("submissions", qs, SubmissionReadSerializer)

    @action(detail=True, methods=["get"], url_path="my-submission")
    def my_submission(self, request: Request, pk: str | None = None) -> Response:
        submission = submission_service.get_my_submission(request.user, pk)
        return self.respond(submission=SubmissionReadSerializer(submission).data)


# ---------- Submissions ----------
@extend_schema_view(
    retrieve=extend_schema(tags=["Submissions"], responses={200: SubmissionReadSerializer, **AUTH_RESPONSES}),
    create=extend_schema(
        tags=["Submissions"],
        request=SubmissionWriteSerializer,
        description=(
            "Create or update the caller's submission for an assignment (one per student). "
            "Rate-limited; returns 201 on create and 200 on update."
        ),
        responses={
            200: SubmissionReadSerializer,
            201: SubmissionReadSerializer,
            429: OpenApiResponse(description="Too many requests / throttled."),
            **AUTH_RESPONSES,
            **VALIDATION_RESPONSE,
        },
        extensions={"x-permissions": {"required_roles": ["student"], "ownership": "self"}},
    ),
    destroy=extend_schema(
        tags=["Submissions"],
        responses={200: OpenApiResponse(description="Deleted"), **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions={"x-permissions": {"required_roles": ["student"], "ownership": "submission-owner"}},
    ),
    grade=extend_schema(
        tags=["Grades"],
        request=GradeSerializer,
        responses={200: SubmissionReadSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions={"x-permissions": {"required_roles": ["teacher"], "ownership": "assignment-owner"}},
    ),
    return_submission=extend_schema(
        tags=["Grades"], request=None,
        responses={200: SubmissionReadSerializer, **AUTH_RESPONSES, **VALIDATION_RESPONSE},
        extensions={"x-permissions": {"required_roles": ["teacher"], "ownership": "assignment-owner"}},
    ),
)
class SubmissionViewSet(EnvelopeMixin, viewsets.ViewSet):
    """Submission upsert, retrieval, deletion and grading."""

    def get_permissions(self) -> list:
        if self.action in ("create", "destroy"):
            return [IsAuthenticated(), IsStudent()]
        if self.action in ("grade", "return_submission"):
            return [IsAuthenticated(), IsTeacher()]
        return [IsAuthenticated()]

    def get_throttles(self):
        """Apply rate throttle only on create."""
        if self.action == "create":
            return [SubmissionRateThrottle()]
        return super().get_throttles()

    def create(self, request: Request) -> Response:
        ser = SubmissionWriteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data
        submission, created = submission_service.upsert_submission(
            request.user,
            data["assignment"],
            content=data.get("content"),
            attachments=data.get("attachments"),
            status=data.get("status"),
        )
        read = SubmissionReadSerializer(submission).data
        if created:
            return self.respond("Submission created successfully", status.HTTP_201_CREATED, submission=read)
        return self.respond("Submission updated successfully", submission=read)

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        submission = submission_service.get_submission(request.user, pk)
        return self.respond(submission=SubmissionReadSerializer(submission).data)

    def destroy(self, request: Request, pk: str | None = None) -> Response:
        submission_service.delete_submission(request.user, pk)
        return self.respond("Submission deleted successfully")

    @action(detail=True, methods=["put"], url_path="grade")
    def grade(self, request: Request, pk: str | None = None) -> Response:
        """Grade a submission (assignment teacher)."""
        ser = GradeSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        submission = submission_service.grade_submission(
            request.user,
            pk,
            grade=ser.validated_data.get("grade"),
            feedback=ser.validated_data.get("feedback"),
        )
        return self.respond("Submission graded successfully", submission=SubmissionReadSerializer(submission).data)

    @action(detail=True, methods=["put"], url_path="return")
    def return_submission(self, request: Request, pk: str | None = None) -> Response:
        submission = submission_service.return_submission(request.user, pk)
        return self.respond("Submission returned successfully", submission=SubmissionReadSerializer(submission).data)


# ---------- Uploads ----------
@extend_schema_view(
    create=extend_schema(
        tags=["Uploads"],
        request={"multipart/form-data": UploadSerializer},
        responses={201: OpenApiResponse(description="File metadata"), **AUTH_RESPONSES, **VALIDATION_RESPONSE},
    ),
    multiple=extend_schema(
        tags=["Uploads"],
        request={"multipart/form-data": MultiUploadSerializer},
        description="Upload up to 5 files in one request (field name `files`).",
        responses={201: OpenApiResponse(description="List of file metadata"), **AUTH_RESPONSES, **VALIDATION_RESPONSE},
    ),
    info=extend_schema(
        tags=["Uploads"],
        parameters=[OpenApiParameter("public_id", str, OpenApiParameter.PATH)],
        responses={200: OpenApiResponse(description="Stored file metadata"), **AUTH_RESPONSES},
    ),
    destroy=extend_schema(
        tags=["Uploads"],
        parameters=[OpenApiParameter("public_id", str, OpenApiParameter.PATH)],
        responses={200: OpenApiResponse(description="Deleted"), **AUTH_RESPONSES},
        extensions={"x-permissions": {"required_roles": ["teacher"]}},
    ),
)
class UploadViewSet(EnvelopeMixin, viewsets.ViewSet):
    """Store attachment files and hand back their metadata."""
    parser_classes = [MultiPartParser, FormParser]
    lookup_field = "public_id"
    lookup_value_regex = r"[^/]+"

    def get_permissions(self) -> list:
        if self.action == "destroy":
            return [IsAuthenticated(), IsTeacher()]
        return [IsAuthenticated()]

    def create(self, request: Request) -> Response:
        ser = UploadSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        meta = upload_service.store_upload(ser.validated_data["file"])
        return self.respond("File uploaded successfully", status.HTTP_201_CREATED, file=meta)

    def destroy(self, request: Request, public_id: str | None = None) -> Response:
        upload_service.delete_upload(public_id)
        return self.respond("File deleted successfully")

    @action(detail=False, methods=["post"], url_path="multiple")
    def multiple(self, request: Request) -> Response:
        metas = upload_service.store_uploads(request.FILES.getlist("files"))
        return self.respond(f"{len(metas)} file(s) uploaded successfully", status.HTTP_201_CREATED, files=metas)

    @action(detail=True, methods=["get"], url_path="info")
    def info(self, request: Request, public_id: str | None = None) -> Response:
        return self.respond(file=upload_service.get_upload_info(public_id))
