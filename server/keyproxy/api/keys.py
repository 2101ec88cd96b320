from typing import Any, Dict, Optional
import logging

from fastapi import APIRouter, Depends

from keyproxy.api.deps import get_credential_store, get_provider_router
from keyproxy.core.credentials import CredentialStore
from keyproxy.core.errors import ValidationFailedError
from keyproxy.providers.router import ProviderRouter
from keyproxy.schemas.chat import KeyRequest

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/keys")
async def save_key(body: Optional[KeyRequest] = None, store: CredentialStore = Depends(get_credential_store)) -> Dict[str, Any]:
    """Keep a provider API key in server memory."""
    body = body or KeyRequest()
    message = store.save(body.provider, body.apiKey)
    return {"success": True, "message": message}


@router.post("/validate")
async def validate_key(body: Optional[KeyRequest] = None, providers: ProviderRouter = Depends(get_provider_router)) -> Dict[str, Any]:
    """Check that the provider currently accepts the key."""
    body = body or KeyRequest()
    try:
        valid = await providers.validate(body.provider, body.apiKey)
    except Exception as e:
        logger.exception("Validation error for %s: %s", body.provider, e)
        raise ValidationFailedError(str(e)) from e
    return {"valid": valid}
