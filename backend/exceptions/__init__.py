from typing import Optional, Dict, Any


class VerificationException(Exception):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details
        }


class IntakeError(VerificationException):
    def __init__(self, reason: str):
        super().__init__(
            f"No usable content could be extracted: {reason}",
            {"reason": reason}
        )


class ClassificationError(VerificationException):
    def __init__(self, reason: str):
        super().__init__(
            f"Classification failed: {reason}",
            {"reason": reason, "recoverable": True}
        )


class SpecialistError(VerificationException):
    def __init__(self, specialist: str, reason: str):
        super().__init__(
            f"Specialist {specialist} failed: {reason}",
            {"specialist": specialist, "reason": reason}
        )


class SynthesisError(VerificationException):
    def __init__(self, reason: str):
        super().__init__(
            f"Synthesis failed: {reason}",
            {"reason": reason, "recoverable": True}
        )


class BreakerOpenError(VerificationException):
    """Expected skip signal: the service's breaker refused the call."""

    def __init__(self, service_name: str, failure_count: int):
        self.service_name = service_name
        super().__init__(
            f"Circuit breaker open for {service_name}",
            {"service": service_name, "failure_count": failure_count}
        )


class CacheError(VerificationException):
    def __init__(self, reason: str):
        super().__init__(
            f"Cached result unusable: {reason}",
            {"reason": reason, "recoverable": True}
        )
