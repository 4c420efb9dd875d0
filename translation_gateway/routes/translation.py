import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field

from translation_gateway.core.exceptions import (
    ConfigStoreError,
    ConfigurationError,
    InvalidRateLimitConfigError,
    ServiceUnavailableError,
)
from translation_gateway.services.translation.config_store import TranslationConfig
from translation_gateway.services.translation.translation_service import (
    TranslationService,
)

router = APIRouter()
logger = logging.getLogger(__name__)


class TextRequest(BaseModel):
    text: str


class TranslationResponse(BaseModel):
    translated_text: str
    original_text: str
    was_translated: bool
    detected_language: str


class BatchRequest(BaseModel):
    texts: List[str]
    target_language: Optional[str] = None


class BatchResponse(BaseModel):
    texts: List[str]


class ErrorMessagesRequest(BaseModel):
    messages: List[str]


class ErrorMessagesResponse(BaseModel):
    messages: List[str]


class RateLimitUpdate(BaseModel):
    rpm: Optional[int] = None
    tpm: Optional[int] = None
    max_concurrent: Optional[int] = None
    batch_size: Optional[int] = None


class ConfigUpdate(BaseModel):
    enabled: Optional[bool] = None
    api_base_url: Optional[str] = Field(default=None, min_length=1)
    api_key: Optional[str] = None
    model: Optional[str] = Field(default=None, min_length=1)
    timeout_seconds: Optional[float] = Field(default=None, gt=0)
    cache_ttl_seconds: Optional[int] = Field(default=None, gt=0)


class EnabledRequest(BaseModel):
    enabled: bool


def get_translation_service(request: Request) -> TranslationService:
    """Get the running translation service from app state."""
    service = getattr(request.app.state, "translation_service", None)
    if service is None:
        raise ServiceUnavailableError("Translation service")
    return service


@router.post("/outbound", response_model=TranslationResponse)
async def translate_outbound(
    body: TextRequest,
    service: TranslationService = Depends(get_translation_service),
):
    """Translate user input for the upstream consumer."""
    result = await service.translate_outbound(body.text)
    return result.to_dict()


@router.post("/inbound", response_model=TranslationResponse)
async def translate_inbound(
    body: TextRequest,
    service: TranslationService = Depends(get_translation_service),
):
    """Translate upstream output back to the user language."""
    result = await service.translate_inbound(body.text)
    return result.to_dict()


@router.post("/batch", response_model=BatchResponse)
async def translate_batch(
    body: BatchRequest,
    service: TranslationService = Depends(get_translation_service),
):
    texts = await service.translate_batch(body.texts, body.target_language)
    return {"texts": texts}


@router.post("/errors", response_model=ErrorMessagesResponse)
async def translate_errors(
    body: ErrorMessagesRequest,
    service: TranslationService = Depends(get_translation_service),
):
    messages = await service.translate_error_messages(body.messages)
    return {"messages": messages}


@router.get("/stats")
async def get_stats(
    service: TranslationService = Depends(get_translation_service),
) -> Dict[str, Any]:
    return service.get_stats()


@router.get("/cache/stats")
async def get_cache_stats(
    service: TranslationService = Depends(get_translation_service),
) -> Dict[str, int]:
    return service.cache_stats()


@router.delete("/cache")
async def clear_cache(
    service: TranslationService = Depends(get_translation_service),
):
    service.clear_cache()
    return {"status": "cleared"}


@router.patch("/rate-limits")
async def update_rate_limits(
    body: RateLimitUpdate,
    service: TranslationService = Depends(get_translation_service),
) -> Dict[str, int]:
    """Update scheduler limits; omitted fields keep their current value."""
    try:
        config = service.configure_rate_limits(**body.model_dump(exclude_none=True))
    except ConfigurationError as e:
        raise InvalidRateLimitConfigError(str(e)) from e
    logger.info(f"Rate limits updated: {config.as_dict()}")
    return config.as_dict()


@router.get("/config")
async def get_config(
    service: TranslationService = Depends(get_translation_service),
) -> Dict[str, Any]:
    return service.get_config().redacted()


@router.put("/config")
async def update_config(
    body: ConfigUpdate,
    service: TranslationService = Depends(get_translation_service),
) -> Dict[str, Any]:
    """Persist and apply a translation config update."""
    current = service.get_config()
    config = TranslationConfig(
        **{**current.model_dump(), **body.model_dump(exclude_none=True)}
    )
    try:
        await service.update_config(config)
    except ConfigurationError:
        raise
    except Exception as e:
        raise ConfigStoreError(f"Failed to persist translation config: {e}") from e
    return service.get_config().redacted()


@router.put("/enabled")
async def set_enabled(
    body: EnabledRequest,
    service: TranslationService = Depends(get_translation_service),
):
    try:
        await service.set_enabled(body.enabled)
    except ConfigurationError:
        raise
    except Exception as e:
        raise ConfigStoreError(f"Failed to persist translation config: {e}") from e
    return {"enabled": service.is_enabled()}
