import hashlib

from models import VerificationRequest


def content_fingerprint(request: VerificationRequest) -> str:
    """Deterministic cache key for a submission."""
    parts = [
        request.input_kind.value,
        " ".join(request.content.split()),
        request.claim_text or "",
    ]
    return hashlib.sha256("\x1f".join(parts).encode("utf-8")).hexdigest()
