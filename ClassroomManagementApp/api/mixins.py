from typing import Any

from rest_framework import status
from rest_framework.response import Response

class EnvelopeMixin:
    """Shared helpers wrapping payloads in the `{success: true, ...}` envelope."""

    def respond(self, message: str | None = None, status_code: int = status.HTTP_200_OK, **payload: Any) -> Response:
        body: dict[str, Any] = {"success": True}
        if message:
            body["message"] = message
        body.update(payload)
        return Response(body, status=status_code)

    def list_response(self, key: str, queryset, serializer_cls) -> Response:
        data = serializer_cls(queryset, many=True).data
        return self.respond(count=len(data), **{key: data})
