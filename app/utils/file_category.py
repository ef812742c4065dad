import os

IMAGE_TYPES = {"jpg", "jpeg", "png", "gif", "svg", "webp", "bmp", "tiff", "ico"}
VIDEO_TYPES = {"mp4", "avi", "mov", "webm", "mkv", "flv", "wmv", "m4v"}
AUDIO_TYPES = {"mp3", "wav", "flac", "ogg", "aac", "m4a", "wma"}
TEXT_TYPES = {"txt", "md", "markdown", "json", "xml", "csv", "log", "rtf"}
OFFICE_TYPES = {"doc", "docx", "xls", "xlsx", "ppt", "pptx", "odt", "ods", "odp"}

OFFICE_MIME_SUBTYPES = {
    "msword",
    "vnd.openxmlformats-officedocument.wordprocessingml.document",
    "vnd.ms-excel",
    "vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "vnd.ms-powerpoint",
    "vnd.openxmlformats-officedocument.presentationml.presentation",
}


def get_file_category(content_type: str | None) -> str:
    """Map an extension or MIME type onto a preview category."""
    if not content_type:
        return "other"

    normalized = content_type.lower().strip()

    if "/" in normalized:
        major, _, sub = normalized.partition("/")
        if major in ("image", "video", "audio"):
            return major
        if major == "text":
            return "text"
        if major == "application":
            if sub == "pdf":
                return "pdf"
            if sub in OFFICE_MIME_SUBTYPES:
                return "office"
            if sub in ("json", "xml"):
                return "text"
            if sub in ("zip", "x-rar-compressed", "x-7z-compressed"):
                return "other"
        normalized = sub

    normalized = normalized.lstrip(".")

    if normalized in IMAGE_TYPES:
        return "image"
    if normalized in VIDEO_TYPES:
        return "video"
    if normalized in AUDIO_TYPES:
        return "audio"
    if normalized == "pdf":
        return "pdf"
    if normalized in TEXT_TYPES:
        return "text"
    if normalized in OFFICE_TYPES:
        return "office"
    return "other"


def content_type_from_filename(filename: str, mime_type: str | None = None) -> str:
    """Extension label stored on the file record, falling back to the MIME type."""
    ext = os.path.splitext(filename)[1].lstrip(".").lower()
    if ext:
        return ext
    if mime_type:
        return mime_type.lower()
    return "bin"
