from django.apps import AppConfig
from django.core import checks

import magic

# Accepted attachment headers and the MIME type libmagic must report for each.
_UPLOAD_SAMPLES = (
    (b"lab notes\n", "text/plain"),
    (b"%PDF-1.4\n%\xe2\xe3\xcf\xd3\n", "application/pdf"),
)


def check_upload_sniffing(app_configs, **kwargs):
    """Attachment uploads are rejected by MIME type; fail fast if libmagic cannot tell types apart."""
    try:
        detected = [magic.from_buffer(sample, mime=True) for sample, _ in _UPLOAD_SAMPLES]
    except Exception as exc:
        return [checks.Error(
            f"Upload MIME sniffing is unavailable: {exc}",
            hint="Install the libmagic system library (e.g. apt install libmagic1).",
            id="classroom.E001",
        )]
    expected = [mime for _, mime in _UPLOAD_SAMPLES]
    if detected != expected:
        return [checks.Warning(
            f"libmagic reported {detected} for samples expected as {expected}; uploads may be misclassified.",
            id="classroom.W001",
        )]
    return []


class CoreConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "ClassroomManagementApp.core"

    def ready(self):
        checks.register(check_upload_sniffing)
