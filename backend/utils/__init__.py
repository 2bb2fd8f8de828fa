from .parsing import extract_json_block, strip_code_fence
from .fingerprint import content_fingerprint
from .retry import async_retry

__all__ = [
    "extract_json_block",
    "strip_code_fence",
    "content_fingerprint",
    "async_retry",
]
