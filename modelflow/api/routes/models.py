"""
Models API Routes.

Endpoints for listing registered models and checking node configurations.
"""

from fastapi import APIRouter, HTTPException
import logging

from modelflow.adapters.registry import adapter_registry
from modelflow.adapters.validation import ConfigValidator
from modelflow.api.schemas import (
    ConfigValidateRequest,
    ConfigValidateResponse,
    ErrorResponse,
    ModelInfo,
    ModelListResponse,
)


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/models", tags=["Models"])

validator = ConfigValidator(adapter_registry)


@router.get(
    "/",
    response_model=ModelListResponse,
)
async def list_models() -> ModelListResponse:
    """
    List all registered models.

    Each entry carries the provider, supported features and the default
    configuration a node config is validated against.
    """
    models = [ModelInfo(**m) for m in adapter_registry.list_models()]
    return ModelListResponse(
        models=models,
        total=len(models),
        providers=adapter_registry.models_by_provider(),
    )


@router.get(
    "/{model_id}",
    response_model=ModelInfo,
    responses={404: {"model": ErrorResponse}},
)
async def get_model(model_id: str) -> ModelInfo:
    """Get information about a model (id lookup is case-insensitive)."""
    canonical = adapter_registry.canonical_id(model_id)
    if canonical is None:
        raise HTTPException(
            status_code=404,
            detail=f"Model '{model_id}' not found"
        )

    adapter = adapter_registry.resolve(canonical)
    return ModelInfo(model_id=canonical, **adapter.describe())


@router.post(
    "/{model_id}/validate",
    response_model=ConfigValidateResponse,
    responses={404: {"model": ErrorResponse}},
)
async def validate_config(model_id: str, request: ConfigValidateRequest) -> ConfigValidateResponse:
    """
    Validate a node configuration against a model.

    Keys must exist in the model's default configuration with the same type,
    and the values must pass the provider's range checks.
    """
    canonical = adapter_registry.canonical_id(model_id)
    if canonical is None:
        raise HTTPException(
            status_code=404,
            detail=f"Model '{model_id}' not found"
        )

    result = validator.validate(canonical, request.config)
    if not result.valid:
        logger.info(f"Config for '{canonical}' rejected: {result.errors}")
    return ConfigValidateResponse(model_id=canonical, **result.to_dict())
