"""
Upload validation: PDF only, ``.pdf`` extension, bounded size
"""

from dataclasses import dataclass
from typing import Optional, Sequence

from evaluator.core.exceptions import ValidationError

BYTES_PER_MB = 1024 * 1024
MAX_FILE_SIZE_MB = 10
MAX_FILE_SIZE_BYTES = MAX_FILE_SIZE_MB * BYTES_PER_MB
ALLOWED_MIME_TYPES = ("application/pdf",)
ALLOWED_EXTENSIONS = (".pdf",)

CV_FIELD = "cv"
PROJECT_REPORT_FIELD = "project_report"
DISPLAY_NAMES = {
    CV_FIELD: "CV",
    PROJECT_REPORT_FIELD: "Project Report",
}

NO_FILES = "No files uploaded. Please upload both CV and Project Report"
CV_REQUIRED = "CV file is required (PDF format)"
PROJECT_REPORT_REQUIRED = "Project Report file is required (PDF format)"


def invalid_type_message(field_name: str, mime_type: str) -> str:
    return f"{field_name} must be a PDF file. Got MIME type: {mime_type}"


def invalid_extension_message(field_name: str) -> str:
    return f"{field_name} must have a valid PDF extension (.pdf)"


def file_too_large_message(field_name: str, max_size_mb: int, size_bytes: int) -> str:
    return f"{field_name} is too large. Maximum size is {max_size_mb}MB, got {size_bytes / BYTES_PER_MB:.2f}MB"


@dataclass
class IncomingFile:
    filename: str
    content_type: Optional[str]
    data: bytes
    declared_size: Optional[int] = None

    @property
    def size(self) -> int:
        """Size reported by the transport, else the number of bytes read"""
        if self.declared_size is not None:
            return self.declared_size
        return len(self.data)


def validate_file(
    file: Optional[IncomingFile],
    field_name: str = "file",
    max_size_mb: int = MAX_FILE_SIZE_MB,
    allowed_mime_types: Sequence[str] = ALLOWED_MIME_TYPES,
    allowed_extensions: Sequence[str] = ALLOWED_EXTENSIONS,
) -> IncomingFile:
    """Check size, MIME type and extension, in that order"""
    if file is None:
        raise ValidationError(f"{field_name} is required and must be a PDF file")

    if file.size > max_size_mb * BYTES_PER_MB:
        raise ValidationError(file_too_large_message(field_name, max_size_mb, file.size))

    if file.content_type not in allowed_mime_types:
        raise ValidationError(invalid_type_message(field_name, file.content_type or "unknown"))

    filename = (file.filename or "").lower()
    if not any(filename.endswith(ext.lower()) for ext in allowed_extensions):
        raise ValidationError(invalid_extension_message(field_name))

    return file


def validate_submission(
    cv: Optional[IncomingFile],
    project_report: Optional[IncomingFile],
    max_size_mb: int = MAX_FILE_SIZE_MB,
) -> None:
    """Both files must be present and each must be a valid PDF"""
    if cv is None and project_report is None:
        raise ValidationError(NO_FILES)
    if cv is None:
        raise ValidationError(CV_REQUIRED)
    if project_report is None:
        raise ValidationError(PROJECT_REPORT_REQUIRED)

    validate_file(cv, DISPLAY_NAMES[CV_FIELD], max_size_mb)
    validate_file(project_report, DISPLAY_NAMES[PROJECT_REPORT_FIELD], max_size_mb)
