"""Error taxonomy and user-facing messages for Viral Studio."""

from enum import Enum
from typing import Optional


# User-visible messages (the studio UI is Indonesian)
FAILURE_TAG = "Gagal"
RATE_LIMIT_MESSAGE = "Batas kuota tercapai. Silakan tunggu {seconds} detik."
DAILY_QUOTA_MESSAGE = "Batas kuota harian tercapai. Silakan coba lagi besok."
EMPTY_TOPIC_MESSAGE = "Topik tidak boleh kosong."
EMPTY_PROMPT_MESSAGE = "Prompt atau topik aktif tidak boleh kosong."
EMPTY_BATCH_MESSAGE = "Masukkan setidaknya satu prompt."
IDEA_NOT_FOUND_MESSAGE = "Ide {idea_id} tidak ditemukan."
MISSING_VIDEO_INPUT_MESSAGE = "Silakan unggah gambar dan masukkan prompt."
BATCH_BUSY_MESSAGE = "Pembuatan gambar masih berjalan untuk timeline ini."
BATCH_TOO_LARGE_MESSAGE = "Jumlah gambar ({count}) melebihi batas {quota} gambar per menit. Pilih lebih sedikit adegan."
IDEAS_FAILED_MESSAGE = "Gagal membuat ide viral. Silakan periksa log untuk detail."
TIMELINE_FAILED_MESSAGE = "Gagal membuat timeline adegan. Silakan periksa log untuk detail."
NARRATION_FAILED_MESSAGE = "Gagal membuat narasi. Silakan periksa log untuk detail."

DAILY_QUOTA_SIGNATURE = ("quota exceeded", "per day")


class ErrorKind(str, Enum):
    """Structured classification of collaborator failures."""

    TRANSIENT = "transient"
    RATE_LIMITED = "rate_limited"
    DAILY_QUOTA = "daily_quota"
    MALFORMED_RESPONSE = "malformed_response"
    NO_RESULT = "no_result"
    TIMEOUT = "timeout"


class StudioError(Exception):
    """Base class for all studio errors."""


class InputValidationError(StudioError):
    """Missing or invalid input, reported before any request is made."""


class GenerationError(StudioError):
    """A generation request to the provider failed."""

    def __init__(
        self,
        message: str,
        kind: ErrorKind = ErrorKind.TRANSIENT,
        provider_message: Optional[str] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.provider_message = provider_message or message


def matches_daily_quota(message: Optional[str]) -> bool:
    """True if a raw provider message carries the per-day quota signature."""
    if not message:
        return False
    lowered = message.lower()
    return all(part in lowered for part in DAILY_QUOTA_SIGNATURE)


def classify_provider_error(exc: BaseException) -> ErrorKind:
    """Map a google-genai error (or anything shaped like one) to an ErrorKind."""
    if isinstance(exc, GenerationError):
        return exc.kind
    if isinstance(exc, TimeoutError):
        return ErrorKind.TIMEOUT

    code = getattr(exc, "code", None)
    status = str(getattr(exc, "status", "") or "")
    message = getattr(exc, "message", None) or str(exc)

    exhausted = code == 429 or status == "RESOURCE_EXHAUSTED"
    if exhausted and "per day" in message.lower():
        return ErrorKind.DAILY_QUOTA
    if matches_daily_quota(message):
        return ErrorKind.DAILY_QUOTA
    if exhausted:
        return ErrorKind.RATE_LIMITED
    return ErrorKind.TRANSIENT


def to_generation_error(exc: BaseException, fallback: str) -> GenerationError:
    """Wrap a provider exception, keeping its raw message for quota inspection."""
    if isinstance(exc, GenerationError):
        return exc
    raw = getattr(exc, "message", None) or str(exc)
    return GenerationError(raw or fallback, kind=classify_provider_error(exc), provider_message=raw)
