from typing import Any, Callable, Type, TypeVar

from pydantic import BaseModel, ValidationError

from config import logger
from exceptions import CacheError, ClassificationError, SynthesisError, VerificationException
from models import ClassificationResult, SynthesisResult, VerificationResult
from utils.parsing import extract_json_block, strip_code_fence

M = TypeVar("M", bound=BaseModel)


def coerce_payload(
    value: Any,
    model: Type[M],
    error: Callable[[str], VerificationException]
) -> M:
    """
    Validate a collaborator response into `model`.
    Accepts the model itself, a dict, or model text containing one JSON object.
    Raises:
        the exception built by `error` for anything that does not validate
    """
    if isinstance(value, model):
        return value

    if isinstance(value, str):
        parsed = extract_json_block(strip_code_fence(value))
        if parsed is None:
            logger.error("No JSON object found in collaborator response: %s", value[:200])
            raise error("response did not contain a JSON object")
        value = parsed

    if not isinstance(value, dict):
        raise error(f"unexpected response type {type(value).__name__}")

    try:
        return model.model_validate(value)
    except ValidationError as e:
        fields = sorted({".".join(str(p) for p in err["loc"]) for err in e.errors()})
        logger.error("Invalid %s payload, failing fields: %s", model.__name__, fields)
        raise error(f"invalid payload ({', '.join(fields) or 'root'})") from e


def coerce_classification(value: Any) -> ClassificationResult:
    return coerce_payload(value, ClassificationResult, ClassificationError)


def coerce_synthesis(value: Any) -> SynthesisResult:
    return coerce_payload(value, SynthesisResult, SynthesisError)


def coerce_cached_result(value: Any) -> VerificationResult:
    return coerce_payload(value, VerificationResult, CacheError)
