"""Root conftest for pytest configuration and shared fixtures.

Tests are colocated with the code under oauthkit/**/tests/; the fixtures
below are available to all of them.
"""

import os

import pytest

# Register pytest-asyncio plugin at the root level
pytest_plugins = ("pytest_asyncio",)

# ---------------------------------------------------------------------------
# Environment variables: must be set before any oauthkit module import
# Uses setdefault so real env vars are never overridden.
# ---------------------------------------------------------------------------
os.environ.setdefault("OAUTHKIT_LOG_LEVEL", "DEBUG")


# ---------------------------------------------------------------------------
# Shared fake fixtures: individual protocol fakes
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_transport():
    """Fake TransportHandler whose operations complete only when told to."""
    from oauthkit.adapters.transport.fake import FakeTransportHandler

    return FakeTransportHandler()


@pytest.fixture
def fake_notifier():
    """Fake NetworkActivityNotifier that records start/end calls."""
    from oauthkit.adapters.network_activity.fake import FakeNetworkActivityNotifier

    return FakeNetworkActivityNotifier()


@pytest.fixture
def fake_authorize_url_handler():
    """Fake authorize-URL presenter that records presented URLs."""
    from oauthkit.domains.oauth.fakes.authorize_url import FakeAuthorizeURLHandler

    return FakeAuthorizeURLHandler()


@pytest.fixture
def immediate_context():
    """Execution context that runs callbacks inline."""
    from oauthkit.core.execution import ImmediateExecutionContext

    return ImmediateExecutionContext()


@pytest.fixture
def fixed_signer():
    """RequestSigner with a fixed nonce and timestamp."""
    from oauthkit.domains.oauth.signer import RequestSigner

    return RequestSigner(
        nonce_generator=lambda: "fixed-nonce", timestamp_generator=lambda: "1700000000"
    )


@pytest.fixture
def credential():
    """OAuth1 credential with an access token."""
    from oauthkit.domains.credentials import Credential

    return Credential(
        consumer_key="ck",
        consumer_secret="cs",
        oauth_token="tok",
        oauth_token_secret="ts",
    )


@pytest.fixture
def client(credential, fake_transport, fake_notifier, immediate_context, fixed_signer):
    """OAuthClient wired to fakes, delivering callbacks inline."""
    from oauthkit.domains.oauth.client import OAuthClient

    return OAuthClient(
        credential,
        transport=fake_transport,
        network_activity_notifier=fake_notifier,
        execution_context=immediate_context,
        signer=fixed_signer,
    )
