"""
Tests for the Appwrite REST adapter using httpx.MockTransport.
"""

import json

import httpx
import pytest

from boltforge_auth.errors import (
    AuthValidationError,
    ConflictError,
    InvalidCredentialsError,
    NetworkError,
    NotFoundError,
    ServerError,
    UnauthenticatedError,
)
from boltforge_auth.models import Profile
from boltforge_auth.profiles import ProfileRepository
from boltforge_auth.providers.appwrite import (
    AppwriteBackend,
    equal_query,
    translate_error,
)

ENDPOINT = "https://appwrite.test/v1"


class Recorder:
    """Mock transport handler recording requests and replaying canned responses"""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def make_backend(recorder):
    return AppwriteBackend(
        ENDPOINT, "proj-1", "bolt-forge-db", transport=httpx.MockTransport(recorder)
    )


def error_response(status, message="failed", error_type=None):
    return httpx.Response(status, json={"message": message, "code": status, "type": error_type})


class TestHelpers:
    """Test Appwrite query helpers"""

    def test_equal_query(self):
        assert json.loads(equal_query("user_id", "u1")) == {
            "method": "equal",
            "attribute": "user_id",
            "values": ["u1"],
        }


class TestTranslateError:
    """Test status code mapping"""

    @pytest.mark.parametrize(
        "status,error_cls",
        [
            (400, AuthValidationError),
            (401, UnauthenticatedError),
            (403, UnauthenticatedError),
            (404, NotFoundError),
            (409, ConflictError),
            (429, ServerError),
            (500, ServerError),
            (503, ServerError),
        ],
    )
    def test_status_mapping(self, status, error_cls):
        error = translate_error(error_response(status), "who_am_i")

        assert isinstance(error, error_cls)
        assert error.code == status

    def test_invalid_credentials_type(self):
        error = translate_error(error_response(401, error_type="user_invalid_credentials"), "who_am_i")
        assert isinstance(error, InvalidCredentialsError)

    def test_session_creation_401_is_credentials(self):
        error = translate_error(error_response(401), "create_session")
        assert isinstance(error, InvalidCredentialsError)

    def test_rate_limited_message(self):
        error = translate_error(error_response(429), "create_session")
        assert error.message == "Too many requests. Please try again later"

    def test_non_json_body(self):
        error = translate_error(httpx.Response(502, text="Bad Gateway"), "who_am_i")
        assert isinstance(error, ServerError)


class TestIdentityEndpoints:
    """Test account and session calls"""

    @pytest.mark.asyncio
    async def test_who_am_i(self):
        recorder = Recorder(httpx.Response(200, json={"$id": "u1", "email": "a@b.com", "name": "Ada"}))
        async with make_backend(recorder) as backend:
            session = await backend.who_am_i()

        assert session.user_id == "u1"
        assert session.display_name == "Ada"
        request = recorder.requests[0]
        assert request.method == "GET"
        assert request.url.path == "/v1/account"
        assert request.headers["X-Appwrite-Project"] == "proj-1"

    @pytest.mark.asyncio
    async def test_guest_is_unauthenticated(self):
        recorder = Recorder(error_response(401, "User (role: guests) missing scope (account)", "general_unauthorized_scope"))
        async with make_backend(recorder) as backend:
            with pytest.raises(UnauthenticatedError):
                await backend.who_am_i()

    @pytest.mark.asyncio
    async def test_transport_failure_is_network_error(self):
        recorder = Recorder(httpx.ConnectError("connection refused"))
        async with make_backend(recorder) as backend:
            with pytest.raises(NetworkError):
                await backend.who_am_i()

    @pytest.mark.asyncio
    async def test_create_session(self):
        recorder = Recorder(httpx.Response(201, json={"userId": "u1", "providerUid": "a@b.com"}))
        async with make_backend(recorder) as backend:
            session = await backend.create_session("a@b.com", "pw")

        assert session.user_id == "u1"
        request = recorder.requests[0]
        assert request.url.path == "/v1/account/sessions/email"
        assert json.loads(request.content) == {"email": "a@b.com", "password": "pw"}

    @pytest.mark.asyncio
    async def test_username_sign_in_rejected_without_request(self):
        recorder = Recorder()
        async with make_backend(recorder) as backend:
            with pytest.raises(AuthValidationError) as exc_info:
                await backend.create_session("ada_l", "pw")

        assert "email_or_username" in exc_info.value.fields
        assert recorder.requests == []

    @pytest.mark.asyncio
    async def test_create_account_ignores_username(self):
        recorder = Recorder(httpx.Response(201, json={"$id": "u1"}))
        async with make_backend(recorder) as backend:
            await backend.create_account("a@b.com", "pw", "Ada", username="ada_l")

        assert "username" not in json.loads(recorder.requests[0].content)

    @pytest.mark.asyncio
    async def test_create_session_rejected(self):
        recorder = Recorder(error_response(401, "Invalid credentials", "user_invalid_credentials"))
        async with make_backend(recorder) as backend:
            with pytest.raises(InvalidCredentialsError) as exc_info:
                await backend.create_session("a@b.com", "wrong")

        assert exc_info.value.error_type == "user_invalid_credentials"

    @pytest.mark.asyncio
    async def test_create_account(self):
        recorder = Recorder(httpx.Response(201, json={"$id": "u1"}))
        async with make_backend(recorder) as backend:
            user_id = await backend.create_account("a@b.com", "pw", "Ada")

        assert user_id == "u1"
        assert json.loads(recorder.requests[0].content) == {
            "userId": "unique()",
            "email": "a@b.com",
            "password": "pw",
            "name": "Ada",
        }

    @pytest.mark.asyncio
    async def test_delete_session_is_idempotent(self):
        recorder = Recorder(httpx.Response(204), error_response(401))
        async with make_backend(recorder) as backend:
            await backend.delete_session()
            await backend.delete_session()

        assert recorder.requests[0].method == "DELETE"
        assert recorder.requests[0].url.path == "/v1/account/sessions/current"

    @pytest.mark.asyncio
    async def test_fallback_cookies_replayed_and_cleared(self):
        recorder = Recorder(
            httpx.Response(201, json={"userId": "u1"}, headers={"X-Fallback-Cookies": '{"a_session":"x"}'}),
            httpx.Response(200, json={"$id": "u1"}),
            error_response(401),
        )
        async with make_backend(recorder) as backend:
            await backend.create_session("a@b.com", "pw")
            await backend.who_am_i()
            await backend.clear_local_artifacts()
            with pytest.raises(UnauthenticatedError):
                await backend.who_am_i()

        assert recorder.requests[1].headers["X-Fallback-Cookies"] == '{"a_session":"x"}'
        assert "X-Fallback-Cookies" not in recorder.requests[2].headers

    def test_oauth_redirect_url(self):
        backend = make_backend(Recorder())
        url = backend.begin_oauth_redirect("github", "http://app/", "http://app/?error=oauth_failed")

        parsed = httpx.URL(url)
        assert parsed.path == "/v1/account/sessions/oauth2/github"
        assert parsed.params["project"] == "proj-1"
        assert parsed.params["failure"] == "http://app/?error=oauth_failed"

    @pytest.mark.asyncio
    async def test_recovery_and_password(self):
        recorder = Recorder(httpx.Response(201, json={}), httpx.Response(200, json={}))
        async with make_backend(recorder) as backend:
            await backend.create_recovery("a@b.com", "http://app/auth/reset-password")
            await backend.update_password("new", "old")

        assert json.loads(recorder.requests[0].content) == {
            "email": "a@b.com",
            "url": "http://app/auth/reset-password",
        }
        assert recorder.requests[1].method == "PATCH"
        assert json.loads(recorder.requests[1].content) == {"password": "new", "oldPassword": "old"}


class TestDocumentEndpoints:
    """Test database document calls"""

    @pytest.mark.asyncio
    async def test_query(self):
        recorder = Recorder(httpx.Response(200, json={"total": 1, "documents": [{"$id": "u1"}]}))
        async with make_backend(recorder) as backend:
            documents = await backend.query("profiles", {"user_id": "u1"})

        assert documents == [{"$id": "u1"}]
        request = recorder.requests[0]
        assert request.url.path == "/v1/databases/bolt-forge-db/collections/profiles/documents"
        assert json.loads(request.url.params["queries[]"])["attribute"] == "user_id"

    @pytest.mark.asyncio
    async def test_create_document(self):
        recorder = Recorder(httpx.Response(201, json={"$id": "u1", "user_id": "u1"}))
        async with make_backend(recorder) as backend:
            await backend.create_document("profiles", {"user_id": "u1"}, ['read("any")'], document_id="u1")

        assert json.loads(recorder.requests[0].content) == {
            "documentId": "u1",
            "data": {"user_id": "u1"},
            "permissions": ['read("any")'],
        }

    @pytest.mark.asyncio
    async def test_create_document_conflict(self):
        recorder = Recorder(error_response(409, "Document with the requested ID already exists"))
        async with make_backend(recorder) as backend:
            with pytest.raises(ConflictError):
                await backend.create_document("profiles", {"user_id": "u1"}, document_id="u1")

    @pytest.mark.asyncio
    async def test_update_document(self):
        recorder = Recorder(httpx.Response(200, json={"$id": "u1", "bio": "Hi"}))
        async with make_backend(recorder) as backend:
            document = await backend.update_document("profiles", "u1", {"bio": "Hi"})

        assert document["bio"] == "Hi"
        request = recorder.requests[0]
        assert request.method == "PATCH"
        assert request.url.path.endswith("/documents/u1")
        assert json.loads(request.content) == {"data": {"bio": "Hi"}}

    @pytest.mark.asyncio
    async def test_missing_document(self):
        recorder = Recorder(error_response(404, "Document not found"))
        async with make_backend(recorder) as backend:
            with pytest.raises(NotFoundError):
                await backend.get_document("profiles", "nope")

    @pytest.mark.asyncio
    async def test_profile_update_sends_only_the_edit(self):
        """Test profile edits carry no attributes outside the collection schema"""
        recorder = Recorder(
            httpx.Response(
                200,
                json={"$id": "u1", "$updatedAt": "2025-01-02T00:00:00+00:00", "user_id": "u1", "bio": "hi"},
            )
        )
        async with make_backend(recorder) as backend:
            repository = ProfileRepository(backend)
            updated = await repository.update(Profile(user_id="u1", document_id="u1"), {"bio": "hi"})

        assert json.loads(recorder.requests[0].content) == {"data": {"bio": "hi"}}
        assert updated.bio == "hi"
        assert updated.updated_at == "2025-01-02T00:00:00+00:00"
