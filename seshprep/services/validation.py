"""Input validation for projects, tasks, profiles and file uploads."""
import ipaddress
import re
from typing import Optional
from urllib.parse import urlparse

from seshprep.config import settings
from seshprep.errors import ValidationFailed
from seshprep.models import FileCategory
from seshprep.models.project import MAX_BPM, MIN_BPM, SAMPLE_RATES, SONG_KEYS

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
DANGEROUS_TEXT_PATTERN = re.compile(r"<|>|javascript:|data:|on\w+=", re.IGNORECASE)
DANGEROUS_DESCRIPTION_PATTERN = re.compile(r"<script|<iframe|javascript:|data:|on\w+=", re.IGNORECASE)

ALLOWED_MIME_TYPES = (
    "audio/wav",
    "audio/x-wav",
    "audio/flac",
    "audio/aiff",
    "video/quicktime",
    "application/zip",
    "audio/mpeg",
    "audio/mp3",
    "audio/aac",
    "audio/ogg",
)
EXECUTABLE_EXTENSIONS = frozenset({"exe", "bat", "cmd", "scr", "com", "pif", "vbs", "js"})
UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9.-]")


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def validate_email(email: str) -> str:
    """Return the normalized address or raise ``ValidationFailed``."""
    normalized = normalize_email(email)
    if not normalized:
        raise ValidationFailed("Email is required")
    if len(normalized) > 254:
        raise ValidationFailed("Email address is too long")
    if not EMAIL_PATTERN.match(normalized):
        raise ValidationFailed("Invalid email format")
    return normalized


def _validate_title(value: str, label: str, max_length: int) -> str:
    if not value or not value.strip():
        raise ValidationFailed(f"{label} is required")
    if len(value) > max_length:
        raise ValidationFailed(f"{label} must be less than {max_length} characters")
    if DANGEROUS_TEXT_PATTERN.search(value):
        raise ValidationFailed(f"{label} contains invalid characters")
    return value.strip()


def validate_project_title(title: str) -> str:
    return _validate_title(title, "Project name", 100)


def validate_collection_title(title: str) -> str:
    return _validate_title(title, "Collection name", 100)


def validate_task_title(title: str) -> str:
    return _validate_title(title, "Task title", 200)


def validate_bpm(bpm: int) -> int:
    if bpm is None or not MIN_BPM <= bpm <= MAX_BPM:
        raise ValidationFailed(f"BPM must be between {MIN_BPM} and {MAX_BPM}")
    return bpm


def validate_sample_rate(sample_rate: int) -> int:
    if sample_rate not in SAMPLE_RATES:
        allowed = ", ".join(str(rate) for rate in SAMPLE_RATES)
        raise ValidationFailed(f"Sample rate must be one of {allowed}")
    return sample_rate


def validate_song_key(song_key: str) -> str:
    if song_key not in SONG_KEYS:
        raise ValidationFailed(f"Unknown key {song_key!r}")
    return song_key


def sanitize_html(value: str) -> str:
    cleaned = re.sub(r"[<>]", "", value or "")
    cleaned = re.sub(r"javascript:", "", cleaned, flags=re.IGNORECASE)
    cleaned = re.sub(r"on\w+=", "", cleaned, flags=re.IGNORECASE)
    return cleaned.strip()


def sanitize_task_description(description: Optional[str]) -> str:
    if not description:
        return ""
    cleaned = re.sub(r"<script[^>]*>.*?</script>", "", description, flags=re.IGNORECASE | re.DOTALL)
    cleaned = re.sub(r"<iframe[^>]*>.*?</iframe>", "", cleaned, flags=re.IGNORECASE | re.DOTALL)
    cleaned = re.sub(r"javascript:", "", cleaned, flags=re.IGNORECASE)
    cleaned = re.sub(r"on\w+=", "", cleaned, flags=re.IGNORECASE)
    cleaned = re.sub(r"data:", "", cleaned, flags=re.IGNORECASE)
    return cleaned.strip()[:1000]


def _is_private_host(hostname: str) -> bool:
    if hostname in ("localhost", "localhost.localdomain"):
        return True
    try:
        address = ipaddress.ip_address(hostname)
    except ValueError:
        return False
    return address.is_private or address.is_loopback or address.is_link_local


def validate_url(url: Optional[str]) -> Optional[str]:
    """Empty values pass; otherwise http(s) only and never a private host."""
    if not url:
        return None
    parsed = urlparse(url.strip())
    if not parsed.scheme or not parsed.netloc:
        raise ValidationFailed("Invalid URL format")
    if parsed.scheme not in ("http", "https"):
        raise ValidationFailed("Only HTTP and HTTPS URLs are allowed")
    if not parsed.hostname:
        raise ValidationFailed("Invalid URL format")
    if _is_private_host(parsed.hostname.lower()):
        raise ValidationFailed("Private network URLs are not allowed")
    return url.strip()


def validate_file_description(description: Optional[str]) -> Optional[str]:
    if not description:
        return None
    if len(description) > 500:
        raise ValidationFailed("File description must be less than 500 characters")
    if DANGEROUS_DESCRIPTION_PATTERN.search(description):
        raise ValidationFailed("File description contains invalid content")
    return description.strip()


def max_file_size(category: str) -> int:
    if category == FileCategory.SESSIONS.value:
        return settings.MAX_FILE_SIZE_SESSIONS
    return settings.MAX_FILE_SIZE_REGULAR


def sanitize_filename(file_name: str) -> str:
    return UNSAFE_FILENAME_CHARS.sub("_", file_name)


def validate_file_upload(file_name: str, file_size: int, mime_type: str, category: str) -> str:
    """Check an upload before any byte is stored; return the sanitized file name."""
    if category not in {c.value for c in FileCategory}:
        raise ValidationFailed(f"Unknown file category {category!r}")
    if not file_name or not file_name.strip():
        raise ValidationFailed("File name is required")

    if mime_type not in ALLOWED_MIME_TYPES:
        raise ValidationFailed(
            f"File type {mime_type} is not allowed. Allowed types: {', '.join(ALLOWED_MIME_TYPES)}"
        )

    extensions = file_name.split(".")[1:]
    if len(extensions) > 1 and any(ext.lower() in EXECUTABLE_EXTENSIONS for ext in extensions):
        raise ValidationFailed("Files with executable extensions are not allowed")

    if file_size is None or file_size < 0:
        raise ValidationFailed("File size must be a positive number")
    limit = max_file_size(category)
    if file_size > limit:
        raise ValidationFailed(
            f"File size {file_size / (1024 ** 3):.2f}GB exceeds {limit // (1024 ** 3)}GB limit for {category} files"
        )

    return sanitize_filename(file_name)
