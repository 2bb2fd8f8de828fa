import importlib
from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from config import logger, settings
from interfaces import Collaborators
from middleware.context import RequestContextMiddleware
from models import VerificationRequest, VerificationResult
from services import VerificationService
from utils.circuit_breaker import CircuitBreakerRegistry


def load_collaborators(path: Optional[str] = None) -> Collaborators:
    """Resolve a 'package.module:function' factory that returns the adapter bundle."""
    path = path or settings.COLLABORATORS_FACTORY
    if not path or ":" not in path:
        raise RuntimeError("COLLABORATORS_FACTORY must be set to 'module:function'")
    module_name, func_name = path.split(":", 1)
    factory = getattr(importlib.import_module(module_name), func_name)
    return factory()


def create_app(
    collaborators: Collaborators,
    registry_factory: Callable[[], CircuitBreakerRegistry] = CircuitBreakerRegistry
) -> FastAPI:

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        breakers = registry_factory()
        app.state.breakers = breakers
        app.state.verification_service = VerificationService(collaborators, breakers)
        logger.info(
            "Verification service started",
            extra={"specialists": sorted(s.value for s in collaborators.gatherers)}
        )
        try:
            yield
        finally:
            await app.state.verification_service.drain(timeout=settings.AUDIT_TIMEOUT)
            breakers.close()

    app = FastAPI(title="Claim Verification API", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestContextMiddleware)

    @app.get("/")
    async def health_check():
        return {"status": "ok", "message": "Claim verification API is running."}

    @app.get("/health/services")
    async def service_health(request: Request):
        return {"services": request.app.state.breakers.snapshot()}

    @app.post("/verify", response_model=VerificationResult)
    async def verify(req: VerificationRequest, request: Request) -> VerificationResult:
        """Verify a submitted claim. Always answers with a result, possibly degraded."""
        service: VerificationService = request.app.state.verification_service
        return await service.verify(req)

    return app


def app_factory() -> FastAPI:
    """Zero-argument factory for `uvicorn main:app_factory --factory`."""
    return create_app(load_collaborators())
