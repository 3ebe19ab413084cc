"""Dynamic OAuth2 client registration and password-grant token exchange.

The management service does not ship a pre-provisioned client for tooling, so
each run registers a throwaway OAuth2 client with the admin credential and then
exchanges the same credential for a bearer token scoped to operation-policy
management:

1. ``POST /client-registration/v0.17/register`` with Basic ``admin:password``
   and a fixed client descriptor, answered with ``clientId``/``clientSecret``.
2. ``POST /oauth2/token`` with Basic ``clientId:clientSecret`` and a
   ``grant_type=password`` form, answered with ``access_token``.

A reachability probe against ``/services/Version`` runs first purely for
diagnostics.  There is no retry: either step failing ends the run.  The admin
password and the client secret are cleared as soon as the token is obtained,
whatever the outcome.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Mapping, Optional

import httpx

from .context import RunContext
from .errors import (
    RegistrationParseError,
    RegistrationTransportError,
    TokenParseError,
    TokenTransportError,
)
from .logging_utils import log_success, mask_sensitive_data
from .scoped_secrets import AccessToken, ClientRegistration, Credential, ScopedSecret

__all__ = [
    "TokenAcquirer",
    "PROBE_PATH",
    "REGISTRATION_PATH",
    "TOKEN_PATH",
    "TOKEN_SCOPES",
    "client_descriptor",
]

PROBE_PATH = "/services/Version"
REGISTRATION_PATH = "/client-registration/v0.17/register"
TOKEN_PATH = "/oauth2/token"

CLIENT_NAME = "policy_deployment_client"
CALLBACK_PLACEHOLDER = "www.google.lk"
GRANT_TYPES = ("client_credentials", "password", "refresh_token")
TOKEN_SCOPES = (
    "apim:common_operation_policy_manage",
    "apim:api_create",
    "apim:api_publish",
    "apim:api_view",
)


def client_descriptor(owner: str) -> Dict[str, Any]:
    """Return the registration payload for a client owned by ``owner``."""
    return {
        "callbackUrl": CALLBACK_PLACEHOLDER,
        "clientName": CLIENT_NAME,
        "owner": owner,
        "grantType": " ".join(GRANT_TYPES),
        "saasApp": True,
    }


def _present(payload: Mapping[str, Any], key: str) -> Optional[str]:
    value = payload.get(key)
    if value is None:
        return None
    text = str(value)
    if not text or text == "null":
        return None
    return text


def _decode(response: httpx.Response) -> Dict[str, Any]:
    try:
        payload = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return {}
    return payload if isinstance(payload, dict) else {}


def _describe_body(payload: Mapping[str, Any], response: httpx.Response) -> str:
    if payload:
        return json.dumps(mask_sensitive_data(dict(payload)))
    return response.text[:200]


class TokenAcquirer:
    """Obtain the single access token used by every deployment in a run."""

    def __init__(self, ctx: RunContext) -> None:
        self._ctx = ctx
        self._logger = ctx.logger

    def acquire(self, credential: Credential) -> AccessToken:
        """Probe, register a client and exchange ``credential`` for a token.

        The credential and the client secret are cleared before returning or
        raising.
        """

        self._logger.info("Obtaining OAuth2 access token...")
        password = credential.password.reveal()
        self._ctx.protect(password)
        registration: Optional[ClientRegistration] = None
        try:
            self.probe()
            registration = self.register(credential)
            return self.exchange(credential, registration)
        finally:
            if registration is not None:
                self._ctx.release(registration.client_secret.reveal())
                registration.discard()
            self._ctx.release(password)
            credential.discard()
            del password

    def probe(self) -> bool:
        """Check reachability of the service; failures are only logged."""

        self._logger.info("Testing server connectivity...")
        try:
            self._ctx.client.get(PROBE_PATH, timeout=self._ctx.settings.probe_timeout)
        except httpx.HTTPError as exc:
            self._logger.warning(
                "Could not connect to WSO2 server at %s (%s). Continuing anyway.",
                self._ctx.settings.base_url,
                type(exc).__name__,
            )
            return False
        return True

    def register(self, credential: Credential) -> ClientRegistration:
        """Register a dynamic OAuth2 client owned by the admin user."""

        self._logger.info("Registering OAuth2 client application...")
        self._logger.info("Using endpoint: %s%s", self._ctx.settings.base_url, REGISTRATION_PATH)
        try:
            response = self._ctx.client.post(
                REGISTRATION_PATH,
                json=client_descriptor(credential.username),
                auth=httpx.BasicAuth(credential.username, credential.password.reveal()),
            )
        except httpx.HTTPError as exc:
            raise RegistrationTransportError(
                f"Failed to register OAuth2 client application: {exc}"
            ) from exc
        if not response.content:
            raise RegistrationTransportError(
                f"Empty response from client registration (HTTP {response.status_code})"
            )

        payload = _decode(response)
        client_id = _present(payload, "clientId")
        client_secret = _present(payload, "clientSecret")
        if client_id is None or client_secret is None:
            self._logger.info("Response: %s", _describe_body(payload, response))
            raise RegistrationParseError(
                "Failed to extract client credentials from registration response "
                f"(HTTP {response.status_code})"
            )
        self._ctx.protect(client_secret)
        log_success(self._logger, "✓ OAuth2 client registered successfully")
        self._logger.info("Client ID: %s", client_id)
        return ClientRegistration(client_id=client_id, client_secret=ScopedSecret(client_secret))

    def exchange(self, credential: Credential, registration: ClientRegistration) -> AccessToken:
        """Exchange the admin credential for a bearer token via the password grant."""

        self._logger.info("Obtaining access token...")
        form = {
            "grant_type": "password",
            "username": credential.username,
            "password": credential.password.reveal(),
            "scope": " ".join(TOKEN_SCOPES),
        }
        try:
            response = self._ctx.client.post(
                TOKEN_PATH,
                data=form,
                auth=httpx.BasicAuth(registration.client_id, registration.client_secret.reveal()),
            )
        except httpx.HTTPError as exc:
            raise TokenTransportError(f"Failed to obtain access token: {exc}") from exc
        finally:
            form.clear()
        if not response.content:
            raise TokenTransportError(
                f"Empty response from token endpoint (HTTP {response.status_code})"
            )

        payload = _decode(response)
        value = _present(payload, "access_token")
        if value is None:
            self._logger.info("Response: %s", _describe_body(payload, response))
            raise TokenParseError(
                f"Failed to extract access token from response (HTTP {response.status_code})"
            )
        self._ctx.protect(value)
        expires_in = payload.get("expires_in")
        log_success(self._logger, "✓ Access token obtained successfully")
        return AccessToken(
            value=ScopedSecret(value),
            token_type=str(payload.get("token_type") or "Bearer"),
            expires_in=int(expires_in) if isinstance(expires_in, (int, float)) else None,
        )
