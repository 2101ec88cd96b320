from fastapi import Request

from keyproxy.core.credentials import CredentialStore
from keyproxy.providers.router import ProviderRouter


def get_credential_store(request: Request) -> CredentialStore:
    return request.app.state.credentials


def get_provider_router(request: Request) -> ProviderRouter:
    return request.app.state.providers
