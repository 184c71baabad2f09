"""Defines constants for upload validation."""

# Size and count limits for uploaded source documents
MAX_FILE_SIZE: int = 25 * 1024 * 1024  # 25 MB per file
MAX_FILES: int = 20
MAX_TOTAL_SIZE: int = 100 * 1024 * 1024  # 100 MB total upload limit

# MIME types the model service accepts as inline document parts
ALLOWED_MIME_TYPES: set[str] = {
    "application/pdf",
    "image/png",
    "image/jpeg",
}

# Form values treated as a true regeneration flag
TRUTHY_FORM_VALUES: set[str] = {"true"}
