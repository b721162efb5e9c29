"""
Intune Backup - Test Fixtures

Provides pytest fixtures for faking Entra ID credentials and mocking Graph.
"""

import base64
import json
import tempfile
import time
from pathlib import Path
from typing import Generator, Iterable, Optional

import pytest
import responses
from responses import matchers
from azure.core.credentials import AccessToken

from config import Settings
from graph.session import REQUIRED_SCOPES, GraphSession

GRAPH_BETA = "https://graph.microsoft.com/beta"


# ═══════════════════════════════════════════════════════════════════════════════
# Credential Fakes
# ═══════════════════════════════════════════════════════════════════════════════


def _b64(data: dict) -> str:
    return base64.urlsafe_b64encode(json.dumps(data).encode()).rstrip(b"=").decode()


def make_token(
    roles: Optional[Iterable[str]] = None,
    scp: Optional[str] = None,
    expires_in: int = 3600,
) -> AccessToken:
    """Build an unsigned JWT access token carrying the given claims."""
    claims = {"aud": "https://graph.microsoft.com"}
    if roles is not None:
        claims["roles"] = list(roles)
    if scp is not None:
        claims["scp"] = scp
    token = f"{_b64({'alg': 'none', 'typ': 'JWT'})}.{_b64(claims)}.sig"
    return AccessToken(token, int(time.time()) + expires_in)


class FakeCredential:
    """Stands in for an azure-identity credential."""

    def __init__(self, token: AccessToken, error: Optional[Exception] = None):
        self.token = token
        self.error = error
        self.requested: list[tuple[str, ...]] = []

    def get_token(self, *scopes: str, **kwargs) -> AccessToken:
        self.requested.append(scopes)
        if self.error:
            raise self.error
        return self.token


class FakeCredentialFactory:
    """Hands out one FakeCredential per sign-in, using tokens in order."""

    def __init__(self, *tokens: AccessToken, error: Optional[Exception] = None):
        self.tokens = tokens
        self.error = error
        self.credentials: list[FakeCredential] = []

    @property
    def calls(self) -> int:
        return len(self.credentials)

    def __call__(self, settings: Settings) -> FakeCredential:
        token = self.tokens[min(self.calls, len(self.tokens) - 1)]
        credential = FakeCredential(token, self.error)
        self.credentials.append(credential)
        return credential


# ═══════════════════════════════════════════════════════════════════════════════
# Environment Fixtures
# ═══════════════════════════════════════════════════════════════════════════════


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test data."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def test_settings(temp_dir: Path) -> Settings:
    """Create test settings for app-only authentication."""
    return Settings(
        graph_tenant_id="contoso.onmicrosoft.com",
        graph_client_id="11111111-2222-3333-4444-555555555555",
        graph_client_secret="test-secret",
        graph_api_version="Beta",
        backup_path=str(temp_dir / "backup"),
        backup_include_assignments=True,
        backup_fail_fast=False,
        log_level="DEBUG",
    )


@pytest.fixture
def backup_root(test_settings: Settings) -> Path:
    root = Path(test_settings.backup_path)
    root.mkdir(parents=True)
    return root


# ═══════════════════════════════════════════════════════════════════════════════
# Graph Fixtures
# ═══════════════════════════════════════════════════════════════════════════════


@pytest.fixture
def credential_factory() -> FakeCredentialFactory:
    """Credential factory issuing tokens with every required scope."""
    return FakeCredentialFactory(make_token(roles=REQUIRED_SCOPES))


@pytest.fixture
def graph_session(
    test_settings: Settings, credential_factory: FakeCredentialFactory
) -> Generator[GraphSession, None, None]:
    """Connected Graph session backed by a fake credential."""
    with GraphSession(test_settings, credential_factory=credential_factory) as session:
        session.connect()
        yield session


@pytest.fixture
def mock_graph() -> Generator[responses.RequestsMock, None, None]:
    """Mock Graph API responses."""
    with responses.RequestsMock() as rsps:
        yield rsps


def add_collection(
    rsps: responses.RequestsMock,
    path: str,
    items: list[dict],
    params: Optional[dict] = None,
) -> None:
    """Register a single-page Graph collection response."""
    rsps.add(
        responses.GET,
        f"{GRAPH_BETA}/{path}",
        json={"value": items},
        status=200,
        match=[matchers.query_param_matcher(params or {})],
    )


def add_error(rsps: responses.RequestsMock, path: str, status: int, message: str) -> None:
    """Register a Graph error response."""
    rsps.add(
        responses.GET,
        f"{GRAPH_BETA}/{path}",
        json={"error": {"code": "Error", "message": message}},
        status=status,
    )
