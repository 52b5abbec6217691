"""Unit tests for OAuth1Flow: the three-legged handshake.

Covers:
- step 1 stores the request token and presents the authorize URL
- step 3 sends oauth_token/oauth_verifier and stores the access token
- missing verifier / missing token handling
- cancellation in every waiting state
- replacement of a pending redirect registration
- authorize URL composition options
- from_parameters / parameters
- authorize_async
"""

import asyncio
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional
from urllib.parse import unquote

import pytest

from oauthkit.adapters.transport.fake import FakeResponse
from oauthkit.core.exceptions import (
    ConfigurationError,
    EncodingError,
    MissingTokenError,
    RequestCancelledError,
    RequestError,
)
from oauthkit.domains.oauth.client import OAuthClient
from oauthkit.domains.oauth.fakes.authorize_url import FakeAuthorizeURLHandler
from oauthkit.domains.oauth.oauth1_flow import FlowState, OAuth1Flow
from oauthkit.domains.oauth.redirect import RedirectObserver
from oauthkit.domains.oauth.types import OAuthResponse

REQUEST_TOKEN_URL = "https://provider.com/oauth/request_token"
AUTHORIZE_URL = "https://provider.com/oauth/authorize"
ACCESS_TOKEN_URL = "https://provider.com/oauth/access_token"
CALLBACK_URL = "https://cb"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class Recorder:
    def __init__(self) -> None:
        self.successes: List[tuple] = []
        self.failures: List[Exception] = []

    def success(self, credential, response, params) -> None:
        self.successes.append((credential, response, params))

    def failure(self, error) -> None:
        self.failures.append(error)

    @property
    def failure_types(self) -> List[type]:
        return [type(e) for e in self.failures]


def _auth_params(header: str) -> Dict[str, str]:
    params = {}
    for item in header[len("OAuth ") :].split(", "):
        key, _, value = item.partition("=")
        params[unquote(key)] = unquote(value.strip('"'))
    return params


@pytest.fixture
def observer():
    return RedirectObserver()


@pytest.fixture
def make_flow(
    fake_transport,
    fake_notifier,
    immediate_context,
    fixed_signer,
    fake_authorize_url_handler,
    observer,
):
    def _make(**kwargs) -> OAuth1Flow:
        client = OAuthClient.from_keys(
            "ck",
            "cs",
            transport=fake_transport,
            network_activity_notifier=fake_notifier,
            execution_context=immediate_context,
            signer=fixed_signer,
        )
        kwargs.setdefault("authorize_url_handler", fake_authorize_url_handler)
        kwargs.setdefault("redirect_observer", observer)
        kwargs.setdefault("allow_missing_oauth_verifier", False)
        kwargs.setdefault("add_callback_url_to_authorize_url", False)
        kwargs.setdefault("use_rfc3986_to_encode_token", False)
        return OAuth1Flow(
            "ck",
            "cs",
            REQUEST_TOKEN_URL,
            kwargs.pop("authorize_url", AUTHORIZE_URL),
            ACCESS_TOKEN_URL,
            client=client,
            **kwargs,
        )

    return _make


def _to_awaiting(flow: OAuth1Flow, transport, recorder: Recorder, token: str = "T1") -> None:
    flow.authorize(CALLBACK_URL, success=recorder.success, failure=recorder.failure)
    transport.respond(
        REQUEST_TOKEN_URL,
        body=f"oauth_token={token}&oauth_token_secret=S1&oauth_callback_confirmed=true".encode(),
    )


# ===========================================================================
# Step 1: request token
# ===========================================================================


class TestRequestToken:
    def test_request_token_is_signed_post_with_callback(self, make_flow, fake_transport):
        flow = make_flow()
        flow.authorize(CALLBACK_URL)

        [request] = fake_transport.requests
        assert request.method == "POST"
        assert request.url == REQUEST_TOKEN_URL
        auth = _auth_params(request.header("Authorization"))
        assert auth["oauth_callback"] == CALLBACK_URL
        assert auth["oauth_consumer_key"] == "ck"
        assert "oauth_token" not in auth
        assert flow.state == FlowState.REQUESTING_TOKEN

    def test_canned_response_updates_credential(
        self, make_flow, fake_transport, fake_authorize_url_handler
    ):
        flow = make_flow()
        recorder = Recorder()

        _to_awaiting(flow, fake_transport, recorder)

        assert flow.credential.oauth_token == "T1"
        assert flow.credential.oauth_token_secret == "S1"
        assert flow.state == FlowState.AWAITING_AUTHORIZATION
        assert fake_authorize_url_handler.urls == [f"{AUTHORIZE_URL}?oauth_token=T1"]
        assert recorder.successes == [] and recorder.failures == []

    def test_request_token_failure_is_reported(
        self, make_flow, fake_transport, fake_authorize_url_handler, observer
    ):
        flow = make_flow()
        recorder = Recorder()
        flow.authorize(CALLBACK_URL, success=recorder.success, failure=recorder.failure)

        fake_transport.respond(REQUEST_TOKEN_URL, status_code=401, body=b"bad consumer key")

        assert recorder.failure_types == [RequestError]
        assert flow.state == FlowState.FAILED
        assert fake_authorize_url_handler.urls == []
        assert observer.has_pending is False

    def test_response_without_token_is_missing_token(
        self, make_flow, fake_transport, fake_authorize_url_handler
    ):
        flow = make_flow()
        recorder = Recorder()
        flow.authorize(CALLBACK_URL, failure=recorder.failure)

        fake_transport.respond(REQUEST_TOKEN_URL, body=b"oauth_problem=nope")

        assert recorder.failure_types == [MissingTokenError]
        assert fake_authorize_url_handler.urls == []

    def test_invalid_callback_url(self, make_flow, fake_transport):
        recorder = Recorder()

        handle = make_flow().authorize("not a url", failure=recorder.failure)

        assert handle is None
        assert recorder.failure_types == [EncodingError]
        assert fake_transport.operations == []

    def test_out_of_band_callback_is_accepted(self, make_flow, fake_transport):
        make_flow().authorize("oob")

        auth = _auth_params(fake_transport.requests[0].header("Authorization"))
        assert auth["oauth_callback"] == "oob"

    def test_invalid_request_token_url(self, fake_transport, immediate_context):
        flow = OAuth1Flow(
            "ck",
            "cs",
            client=OAuthClient.from_keys(
                "ck", "cs", transport=fake_transport, execution_context=immediate_context
            ),
        )
        recorder = Recorder()

        flow.authorize(CALLBACK_URL, failure=recorder.failure)

        assert recorder.failure_types == [EncodingError]
        assert flow.state == FlowState.FAILED


# ===========================================================================
# Step 3: redirect and access token
# ===========================================================================


class TestAccessToken:
    def test_redirect_issues_access_request_with_token_and_verifier(
        self, make_flow, fake_transport
    ):
        flow = make_flow()
        recorder = Recorder()
        _to_awaiting(flow, fake_transport, recorder)

        assert flow.handle_redirect(f"{CALLBACK_URL}?oauth_token=T1&oauth_verifier=V1")

        access = fake_transport.find(ACCESS_TOKEN_URL).request
        assert access.method == "POST"
        auth = _auth_params(access.header("Authorization"))
        assert auth["oauth_token"] == "T1"
        assert auth["oauth_verifier"] == "V1"
        assert flow.credential.oauth_verifier == "V1"
        assert flow.state == FlowState.REQUESTING_ACCESS_TOKEN

    def test_access_token_completes_flow(self, make_flow, fake_transport, fake_notifier):
        flow = make_flow()
        recorder = Recorder()
        _to_awaiting(flow, fake_transport, recorder)
        flow.handle_redirect(f"{CALLBACK_URL}?oauth_token=T1&oauth_verifier=V1")

        fake_transport.respond(
            ACCESS_TOKEN_URL, body=b"oauth_token=AT&oauth_token_secret=AS&user_id=42"
        )

        [(credential, response, params)] = recorder.successes
        assert credential is flow.credential
        assert (credential.oauth_token, credential.oauth_token_secret) == ("AT", "AS")
        assert params["user_id"] == "42"
        assert response.status_code == 200
        assert recorder.failures == []
        assert flow.state == FlowState.AUTHORIZED
        assert fake_notifier.events == ["started", "ended", "started", "ended"]

    def test_redirect_in_fragment(self, make_flow, fake_transport):
        flow = make_flow()
        _to_awaiting(flow, fake_transport, Recorder())

        flow.handle_redirect(f"{CALLBACK_URL}#oauth_token=T1&oauth_verifier=V1")

        auth = _auth_params(fake_transport.find(ACCESS_TOKEN_URL).request.header("Authorization"))
        assert auth["oauth_verifier"] == "V1"

    def test_token_alias(self, make_flow, fake_transport):
        flow = make_flow()
        _to_awaiting(flow, fake_transport, Recorder())

        flow.handle_redirect(f"{CALLBACK_URL}?token=T9&oauth_verifier=V1")

        assert flow.credential.oauth_token == "T9"

    def test_missing_verifier_fails_before_access_request(
        self, make_flow, fake_transport, observer
    ):
        flow = make_flow()
        recorder = Recorder()
        _to_awaiting(flow, fake_transport, recorder)

        flow.handle_redirect(f"{CALLBACK_URL}?oauth_token=T1")

        assert recorder.failure_types == [ConfigurationError]
        assert len(fake_transport.operations) == 1
        assert flow.state == FlowState.FAILED
        assert observer.has_pending is False

    def test_missing_verifier_allowed(self, make_flow, fake_transport):
        flow = make_flow(allow_missing_oauth_verifier=True)
        recorder = Recorder()
        _to_awaiting(flow, fake_transport, recorder)

        flow.handle_redirect(f"{CALLBACK_URL}?oauth_token=T1")

        auth = _auth_params(fake_transport.find(ACCESS_TOKEN_URL).request.header("Authorization"))
        assert auth["oauth_token"] == "T1"
        assert "oauth_verifier" not in auth

    @pytest.mark.parametrize(
        "redirect",
        [f"{CALLBACK_URL}?oauth_verifier=V1", f"{CALLBACK_URL}?oauth_token=&oauth_verifier=V1"],
        ids=["absent", "empty"],
    )
    def test_missing_token(self, make_flow, fake_transport, redirect):
        flow = make_flow()
        recorder = Recorder()
        _to_awaiting(flow, fake_transport, recorder)

        flow.handle_redirect(redirect)

        assert recorder.failure_types == [MissingTokenError]
        assert len(fake_transport.operations) == 1

    def test_access_token_failure(self, make_flow, fake_transport):
        flow = make_flow()
        recorder = Recorder()
        _to_awaiting(flow, fake_transport, recorder)
        flow.handle_redirect(f"{CALLBACK_URL}?oauth_token=T1&oauth_verifier=V1")

        fake_transport.respond(ACCESS_TOKEN_URL, status_code=500)

        assert recorder.failure_types == [RequestError]
        assert recorder.successes == []
        assert flow.state == FlowState.FAILED

    def test_redirect_after_completion_is_dropped(self, make_flow, fake_transport):
        flow = make_flow()
        _to_awaiting(flow, fake_transport, Recorder())
        flow.handle_redirect(f"{CALLBACK_URL}?oauth_token=T1&oauth_verifier=V1")

        assert flow.handle_redirect(f"{CALLBACK_URL}?oauth_token=T1&oauth_verifier=V2") is False
        assert len(fake_transport.operations) == 2


# ===========================================================================
# Cancellation
# ===========================================================================


class TestCancel:
    def test_cancel_during_request_token(self, make_flow, fake_transport, fake_notifier):
        flow = make_flow()
        recorder = Recorder()
        handle = flow.authorize(CALLBACK_URL, failure=recorder.failure)

        handle.cancel()
        handle.cancel()

        assert recorder.failure_types == [RequestCancelledError]
        assert fake_transport.operations[0].is_cancelled
        assert fake_notifier.events == ["started", "ended"]
        assert flow.state == FlowState.CANCELLED

    def test_cancel_while_awaiting_redirect(self, make_flow, fake_transport, observer):
        flow = make_flow()
        recorder = Recorder()
        _to_awaiting(flow, fake_transport, recorder)

        flow.cancel()

        assert recorder.failure_types == [RequestCancelledError]
        assert observer.has_pending is False
        assert flow.handle_redirect(f"{CALLBACK_URL}?oauth_token=T1&oauth_verifier=V1") is False
        assert len(fake_transport.operations) == 1

    def test_cancel_during_access_token(self, make_flow, fake_transport, fake_notifier):
        flow = make_flow()
        recorder = Recorder()
        _to_awaiting(flow, fake_transport, recorder)
        flow.handle_redirect(f"{CALLBACK_URL}?oauth_token=T1&oauth_verifier=V1")

        flow.cancel()

        assert recorder.failure_types == [RequestCancelledError]
        assert fake_transport.operations[1].is_cancelled
        assert fake_notifier.active_network_activities == 0

    def test_cancel_after_success_is_noop(self, make_flow, fake_transport):
        flow = make_flow()
        recorder = Recorder()
        _to_awaiting(flow, fake_transport, recorder)
        flow.handle_redirect(f"{CALLBACK_URL}?oauth_token=T1&oauth_verifier=V1")
        fake_transport.respond(ACCESS_TOKEN_URL, body=b"oauth_token=AT&oauth_token_secret=AS")

        flow.cancel()

        assert len(recorder.successes) == 1
        assert recorder.failures == []


# ===========================================================================
# Completions that race a cancel (table-driven)
# ===========================================================================


def _response(body: bytes) -> OAuthResponse:
    return OAuthResponse(data=body, response=FakeResponse())


def _start_only(flow, transport, recorder) -> None:
    flow.authorize(CALLBACK_URL, success=recorder.success, failure=recorder.failure)


def _through_redirect(flow, transport, recorder) -> None:
    _to_awaiting(flow, transport, recorder)
    flow.handle_redirect(f"{CALLBACK_URL}?oauth_token=T1&oauth_verifier=V1")


@dataclass
class LateCase:
    desc: str
    advance: Callable[[OAuth1Flow, object, Recorder], None]
    deliver: Callable[[OAuth1Flow], None]
    expected_token: str
    expected_secret: str
    expected_verifier: str


LATE_CASES = [
    LateCase(
        "request_token",
        _start_only,
        lambda flow: flow._on_request_token(_response(b"oauth_token=T9&oauth_token_secret=S9")),
        "",
        "",
        "",
    ),
    LateCase(
        "redirect",
        _to_awaiting,
        lambda flow: flow._on_redirect(f"{CALLBACK_URL}?oauth_token=T9&oauth_verifier=V9"),
        "T1",
        "S1",
        "",
    ),
    LateCase(
        "access_token",
        _through_redirect,
        lambda flow: flow._on_access_token(_response(b"oauth_token=AT&oauth_token_secret=AS")),
        "T1",
        "S1",
        "V1",
    ),
]


@pytest.mark.parametrize("case", LATE_CASES, ids=lambda c: c.desc)
def test_completion_after_cancel_leaves_credential_alone(
    make_flow, fake_transport, fake_authorize_url_handler, observer, case: LateCase
):
    flow = make_flow()
    recorder = Recorder()
    case.advance(flow, fake_transport, recorder)
    flow.cancel()
    operations = len(fake_transport.operations)
    presented = list(fake_authorize_url_handler.urls)

    case.deliver(flow)

    credential = flow.credential
    assert credential.oauth_token == case.expected_token
    assert credential.oauth_token_secret == case.expected_secret
    assert credential.oauth_verifier == case.expected_verifier
    assert flow.state == FlowState.CANCELLED
    assert recorder.failure_types == [RequestCancelledError]
    assert recorder.successes == []
    assert len(fake_transport.operations) == operations
    assert fake_authorize_url_handler.urls == presented
    assert observer.has_pending is False


class CancelOnRegisterObserver(RedirectObserver):
    """Cancels `flow` between registering the handler and returning it."""

    def __init__(self) -> None:
        super().__init__()
        self.flow: Optional[OAuth1Flow] = None

    def observe_callback(self, handler, on_discard=None):
        registration = super().observe_callback(handler, on_discard)
        self.flow.cancel()
        return registration


def test_cancel_while_registering_leaves_no_registration(
    make_flow, fake_transport, fake_authorize_url_handler
):
    observer = CancelOnRegisterObserver()
    flow = make_flow(redirect_observer=observer)
    observer.flow = flow
    recorder = Recorder()

    _to_awaiting(flow, fake_transport, recorder)

    assert recorder.failure_types == [RequestCancelledError]
    assert flow.state == FlowState.CANCELLED
    assert observer.has_pending is False
    assert fake_authorize_url_handler.urls == []
    assert flow.handle_redirect(f"{CALLBACK_URL}?oauth_token=T1&oauth_verifier=V1") is False
    assert len(fake_transport.operations) == 1


# ===========================================================================
# Concurrent authorize calls
# ===========================================================================


class TestConcurrentAuthorize:
    def test_second_authorize_on_same_flow_is_refused(self, make_flow, fake_transport):
        flow = make_flow()
        first, second = Recorder(), Recorder()
        flow.authorize(CALLBACK_URL, failure=first.failure)

        handle = flow.authorize(CALLBACK_URL, failure=second.failure)

        assert handle is None
        assert second.failure_types == [ConfigurationError]
        assert first.failures == []
        assert len(fake_transport.operations) == 1

    def test_authorize_again_after_failure(self, make_flow, fake_transport):
        flow = make_flow()
        recorder = Recorder()
        flow.authorize(CALLBACK_URL, failure=recorder.failure)
        fake_transport.respond(REQUEST_TOKEN_URL, status_code=500)

        assert flow.authorize(CALLBACK_URL) is flow
        assert flow.state == FlowState.REQUESTING_TOKEN

    def test_new_registration_replaces_pending_one(self, make_flow, fake_transport):
        first_flow, second_flow = make_flow(), make_flow()
        first, second = Recorder(), Recorder()
        _to_awaiting(first_flow, fake_transport, first, token="A")
        _to_awaiting(second_flow, fake_transport, second, token="B")

        assert first.failure_types == [RequestCancelledError]
        assert first_flow.state == FlowState.CANCELLED

        second_flow.handle_redirect(f"{CALLBACK_URL}?oauth_token=B&oauth_verifier=V")
        auth = _auth_params(fake_transport.find(ACCESS_TOKEN_URL).request.header("Authorization"))
        assert auth["oauth_token"] == "B"
        assert second.failures == []


# ===========================================================================
# Authorize URL composition (table-driven)
# ===========================================================================


@dataclass
class AuthorizeUrlCase:
    desc: str
    authorize_url: str
    token: str
    kwargs: dict
    expected: str


AUTHORIZE_URL_CASES = [
    AuthorizeUrlCase("plain", AUTHORIZE_URL, "T1", {}, f"{AUTHORIZE_URL}?oauth_token=T1"),
    AuthorizeUrlCase(
        "existing query",
        f"{AUTHORIZE_URL}?perms=read",
        "T1",
        {},
        f"{AUTHORIZE_URL}?perms=read&oauth_token=T1",
    ),
    AuthorizeUrlCase(
        "with callback",
        AUTHORIZE_URL,
        "T1",
        {"add_callback_url_to_authorize_url": True},
        f"{AUTHORIZE_URL}?oauth_token=T1&oauth_callback=https%3A%2F%2Fcb",
    ),
    AuthorizeUrlCase(
        "legacy token encoding", AUTHORIZE_URL, "a%2Fb", {}, f"{AUTHORIZE_URL}?oauth_token=a/b"
    ),
    AuthorizeUrlCase(
        "rfc3986 token encoding",
        AUTHORIZE_URL,
        "a%2Fb",
        {"use_rfc3986_to_encode_token": True},
        f"{AUTHORIZE_URL}?oauth_token=a%2Fb",
    ),
]


@pytest.mark.parametrize("case", AUTHORIZE_URL_CASES, ids=lambda c: c.desc)
def test_authorize_url(
    make_flow, fake_transport, fake_authorize_url_handler, case: AuthorizeUrlCase
):
    flow = make_flow(authorize_url=case.authorize_url, **case.kwargs)

    _to_awaiting(flow, fake_transport, Recorder(), token=case.token)

    assert fake_authorize_url_handler.last_url == case.expected


def test_presenter_error_fails_flow(make_flow, fake_transport, observer):
    def _broken(url):
        raise OSError("no display")

    flow = make_flow(authorize_url_handler=FakeAuthorizeURLHandler(on_handle=_broken))
    recorder = Recorder()

    _to_awaiting(flow, fake_transport, recorder)

    assert recorder.failure_types == [ConfigurationError]
    assert observer.has_pending is False


# ===========================================================================
# Configuration
# ===========================================================================


def test_from_parameters_round_trip(fake_transport):
    flow = OAuth1Flow(
        "ck", "cs", REQUEST_TOKEN_URL, AUTHORIZE_URL, ACCESS_TOKEN_URL, transport=fake_transport
    )

    again = OAuth1Flow.from_parameters(flow.parameters, transport=fake_transport)

    assert again.parameters == flow.parameters
    assert again.credential.consumer_key == "ck"


def test_from_parameters_missing_key():
    assert OAuth1Flow.from_parameters({"consumer_key": "ck", "consumer_secret": "cs"}) is None


def test_flags_default_from_settings(monkeypatch, fake_transport):
    from oauthkit.core.config import settings

    monkeypatch.setattr(settings, "ALLOW_MISSING_OAUTH_VERIFIER", True)

    flow = OAuth1Flow("ck", "cs", transport=fake_transport)

    assert flow.allow_missing_oauth_verifier is True
    explicit = OAuth1Flow("ck", "cs", transport=fake_transport, allow_missing_oauth_verifier=False)
    assert explicit.allow_missing_oauth_verifier is False


# ===========================================================================
# authorize_async
# ===========================================================================


@pytest.mark.asyncio
async def test_authorize_async(make_flow, fake_transport):
    flow = make_flow()
    task = asyncio.create_task(flow.authorize_async(CALLBACK_URL))
    await asyncio.sleep(0)

    fake_transport.respond(REQUEST_TOKEN_URL, body=b"oauth_token=T1&oauth_token_secret=S1")
    flow.handle_redirect(f"{CALLBACK_URL}?oauth_token=T1&oauth_verifier=V1")
    fake_transport.respond(ACCESS_TOKEN_URL, body=b"oauth_token=AT&oauth_token_secret=AS")
    credential, response, params = await asyncio.wait_for(task, timeout=1)

    assert credential.oauth_token == "AT"
    assert params == {"oauth_token": "AT", "oauth_token_secret": "AS"}


@pytest.mark.asyncio
async def test_authorize_async_cancel(make_flow, fake_transport):
    flow = make_flow()
    task = asyncio.create_task(flow.authorize_async(CALLBACK_URL))
    await asyncio.sleep(0)

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert flow.state == FlowState.CANCELLED
    assert fake_transport.operations[0].is_cancelled
