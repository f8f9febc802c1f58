"""
Shared fixtures: RSA test keys (generated once per session), settings
pointing at a fake identity server, and signing credentials.
"""
# Load .env BEFORE any other imports
from pathlib import Path
from dotenv import load_dotenv

_repo_root = Path(__file__).parent.parent.parent
load_dotenv(_repo_root / ".env")

import pytest

from sso_proxy.core.config import Settings
from sso_proxy.core.signing.envelope import SigningCredentials
from sso_proxy.core.signing.keys import generate_keypair, private_key_to_pem, public_key_to_pem


TEST_KEY_ID = "client-key-1"
TEST_BACKEND_URL = "https://sso.example.com/api"


@pytest.fixture(scope="session")
def rsa_keypair():
    """2048-bit RSA keypair shared by the whole session."""
    return generate_keypair(2048)


@pytest.fixture(scope="session")
def private_key(rsa_keypair):
    return rsa_keypair[0]


@pytest.fixture(scope="session")
def public_key(rsa_keypair):
    return rsa_keypair[1]


@pytest.fixture(scope="session")
def private_key_pem(private_key):
    return private_key_to_pem(private_key)


@pytest.fixture(scope="session")
def public_key_pem(public_key):
    return public_key_to_pem(public_key)


@pytest.fixture
def credentials(private_key_pem):
    return SigningCredentials(private_key_pem=private_key_pem, key_id=TEST_KEY_ID)


@pytest.fixture
def settings(private_key_pem):
    """Settings for a fully configured proxy; .env is ignored."""
    return Settings(
        _env_file=None,
        sso_base_url="https://sso.example.com",
        sso_backend_base_url=TEST_BACKEND_URL,
        client_id="demo-client",
        client_secret="demo-secret",
        oauth_redirect_uri="http://localhost:3000/oauth/callback",
        api_key="test-api-key",
        app_identifier="demo-app",
        key_id=TEST_KEY_ID,
        private_key_pem=private_key_pem,
    )
