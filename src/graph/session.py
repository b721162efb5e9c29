"""
Intune Backup - Graph Session Module

Provides the authenticated Microsoft Graph session shared by every category.

Supports two modes:
- App-only: With GRAPH_CLIENT_SECRET - application permissions (roles claim)
- Delegated: Without GRAPH_CLIENT_SECRET - device code sign-in (scp claim)
"""

import base64
import json
import logging
import time
from typing import Any, Callable, Optional

import requests
from azure.core.credentials import AccessToken, TokenCredential
from azure.core.exceptions import ClientAuthenticationError
from azure.identity import ClientSecretCredential, DeviceCodeCredential

from config import Settings
from errors import AuthenticationError, InsufficientPermissionError, TransportError

logger = logging.getLogger(__name__)

# Read-only permission scopes needed by the category exports
REQUIRED_SCOPES = (
    "DeviceManagementApps.Read.All",
    "DeviceManagementConfiguration.Read.All",
    "DeviceManagementManagedDevices.Read.All",
    "DeviceManagementScripts.Read.All",
    "DeviceManagementServiceConfig.Read.All",
)

# Seconds before expiry at which a token is refreshed
TOKEN_REFRESH_MARGIN = 300

CredentialFactory = Callable[[Settings], TokenCredential]


def default_credential(settings: Settings) -> TokenCredential:
    """Build the azure-identity credential for the configured mode."""
    if settings.uses_client_secret:
        return ClientSecretCredential(
            tenant_id=settings.graph_tenant_id,
            client_id=settings.graph_client_id,
            client_secret=settings.graph_client_secret,
        )
    return DeviceCodeCredential(
        client_id=settings.graph_client_id,
        tenant_id=settings.graph_tenant_id,
    )


def decode_token_claims(token: str) -> dict[str, Any]:
    """Decode the payload of a JWT access token without verifying it."""
    parts = token.split(".")
    if len(parts) < 2:
        return {}
    payload = parts[1] + "=" * (-len(parts[1]) % 4)
    try:
        return json.loads(base64.urlsafe_b64decode(payload))
    except ValueError:
        logger.debug("Access token payload is not a decodable JWT")
        return {}


class GraphSession:
    """Authenticated session against Microsoft Graph.

    Starts unauthenticated; connect() acquires a token carrying the full
    scope set and is safe to call again to re-verify an existing session.
    """

    def __init__(
        self,
        settings: Settings,
        credential_factory: CredentialFactory = default_credential,
        http: Optional[requests.Session] = None,
    ):
        """Initialize the Graph session.

        Args:
            settings: Application settings containing Graph credentials.
            credential_factory: Builds the token credential for each sign-in.
            http: Optional requests session (a new one is created otherwise).
        """
        self.settings = settings
        self.credential_factory = credential_factory
        self.http = http or requests.Session()
        self._credential: Optional[TokenCredential] = None
        self._token: Optional[AccessToken] = None

    def __enter__(self) -> "GraphSession":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def close(self) -> None:
        self.http.close()

    @property
    def is_authenticated(self) -> bool:
        """Check if the session holds an unexpired access token."""
        return self._token is not None and not self._token_expiring()

    @property
    def api_root(self) -> str:
        return f"{self.settings.graph_base_url.rstrip('/')}/{self.settings.api_segment}"

    def requested_scopes(self) -> list[str]:
        """Scopes passed to the credential when signing in."""
        base = self.settings.graph_base_url.rstrip("/")
        if self.settings.uses_client_secret:
            # App-only tokens carry every consented application permission
            return [f"{base}/.default"]
        return [f"{base}/{scope}" for scope in REQUIRED_SCOPES]

    def connect(self) -> None:
        """Establish the session or re-verify the existing one.

        An expiring token is refreshed through the existing credential; a new
        sign-in only happens when there is none yet or scopes are missing.

        Raises:
            AuthenticationError: If no token could be acquired.
        """
        if self._credential is None or self._token is None:
            self._authenticate()
            self._warn_missing_scopes()
            return

        if self._token_expiring():
            logger.debug("Access token expiring, refreshing")
            self._token = self._acquire_token()

        if self.missing_scopes():
            logger.info(
                f"Session lacks scopes {', '.join(self.missing_scopes())}, re-authenticating"
            )
            self._authenticate()

        self._warn_missing_scopes()

    def _warn_missing_scopes(self) -> None:
        missing = self.missing_scopes()
        if missing:
            logger.warning(
                f"Access token is missing required scopes: {', '.join(missing)}. "
                "Categories needing them will fail."
            )

    def granted_scopes(self) -> set[str]:
        """Scopes granted to the current token (roles and scp claims)."""
        if self._token is None:
            return set()
        claims = decode_token_claims(self._token.token)
        scopes = set(claims.get("roles") or [])
        scopes.update((claims.get("scp") or "").split())
        return scopes

    def missing_scopes(self) -> list[str]:
        """Required scopes not covered by the current token.

        A ReadWrite grant satisfies the matching Read scope.
        """
        granted = self.granted_scopes()
        return [
            scope
            for scope in REQUIRED_SCOPES
            if scope not in granted and scope.replace(".Read.", ".ReadWrite.") not in granted
        ]

    def get(self, path: str, params: Optional[dict[str, str]] = None) -> dict[str, Any]:
        """Issue a single GET against Graph.

        Args:
            path: Path relative to the API root, or an absolute URL.
            params: Optional query parameters.

        Returns:
            Decoded JSON body.

        Raises:
            InsufficientPermissionError: On HTTP 401/403.
            TransportError: On network failure or any other error status.
        """
        url = self._url(path)
        headers = {
            "Authorization": f"Bearer {self._access_token()}",
            "Accept": "application/json",
        }

        try:
            response = self.http.get(
                url, params=params, headers=headers, timeout=self.settings.graph_timeout
            )
        except requests.RequestException as e:
            raise TransportError(f"GET {url} failed: {e}", url=url) from e

        if response.status_code in (401, 403):
            raise InsufficientPermissionError(
                self._error_message(response), status_code=response.status_code, url=url
            )
        if response.status_code >= 400:
            raise TransportError(
                self._error_message(response), status_code=response.status_code, url=url
            )

        try:
            return response.json()
        except ValueError as e:
            raise TransportError(f"GET {url} returned invalid JSON", url=url) from e

    def paginate(self, path: str, params: Optional[dict[str, str]] = None) -> list[dict[str, Any]]:
        """Fetch every page of a collection, following @odata.nextLink.

        Items keep page order and in-page order. A failed page fails the
        whole call.
        """
        items: list[dict[str, Any]] = []
        page = self.get(path, params=params)
        pages = 1

        while True:
            items.extend(page.get("value", []))
            next_link = page.get("@odata.nextLink")
            if not next_link:
                break
            page = self.get(next_link)
            pages += 1

        logger.debug(f"Fetched {len(items)} items from {path} ({pages} pages)")
        return items

    def reveal_oma_secret(self, configuration_id: str, secret_reference_id: str) -> str:
        """Fetch the plaintext of an encrypted OMA setting value."""
        path = (
            f"deviceManagement/deviceConfigurations/{configuration_id}"
            f"/getOmaSettingPlainTextValue(secretReferenceValueId='{secret_reference_id}')"
        )
        return self.get(path).get("value")

    def _authenticate(self) -> None:
        """Sign in with a fresh credential requesting the full scope set."""
        self._credential = self.credential_factory(self.settings)
        self._token = None
        self._token = self._acquire_token()

        mode = "app-only" if self.settings.uses_client_secret else "delegated"
        logger.info(f"Authenticated to Microsoft Graph ({mode}, {self.settings.graph_api_version})")

    def _acquire_token(self) -> AccessToken:
        try:
            return self._credential.get_token(*self.requested_scopes())
        except ClientAuthenticationError as e:
            raise AuthenticationError(f"Could not acquire Graph access token: {e}") from e

    def _access_token(self) -> str:
        if self._credential is None:
            raise AuthenticationError("GraphSession not connected; call connect() first")
        if self._token is None or self._token_expiring():
            self._token = self._acquire_token()
        return self._token.token

    def _token_expiring(self) -> bool:
        return self._token.expires_on - TOKEN_REFRESH_MARGIN <= time.time()

    def _url(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.api_root}/{path.lstrip('/')}"

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        """Extract the Graph error message from an error response."""
        try:
            error = response.json().get("error", {})
            message = error.get("message") or error.get("code")
        except ValueError:
            message = None
        return f"HTTP {response.status_code}: {message or response.reason}"
