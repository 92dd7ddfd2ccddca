"""API throttling classes."""

from rest_framework.throttling import UserRateThrottle

class SubmissionRateThrottle(UserRateThrottle):
    """Throttle limiting submission create/update requests per user (rate from settings)."""
    scope = "submission_create"
