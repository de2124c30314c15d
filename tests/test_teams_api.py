import time
from unittest.mock import Mock, patch

import jwt
import pytest
import requests

from teams_api import TeamsAPI, TeamsAPIError


def graph_token(expires_in: int = 3600) -> str:
    claims = {"tid": "tenant", "exp": int(time.time()) + expires_in}
    return jwt.encode(claims, "signing-key-for-tests-only-0000000", algorithm="HS256")


def response(status_code: int = 200, json_data=None, text: str = ""):
    mock = Mock()
    mock.status_code = status_code
    mock.text = text
    mock.json.return_value = json_data
    return mock


@pytest.fixture
def api():
    return TeamsAPI("client", "secret", "tenant", timeout=2.0)


class TestAccessToken:

    def test_token_is_cached(self, api):
        token = graph_token()
        with patch("teams_api.requests.post", return_value=response(json_data={"access_token": token})) as post:
            assert api.get_access_token() == token
            assert api.get_access_token() == token

        post.assert_called_once()
        url = post.call_args[0][0]
        assert url == "https://login.microsoftonline.com/tenant/oauth2/v2.0/token"
        assert post.call_args[1]["data"]["grant_type"] == "client_credentials"

    def test_expiring_token_is_refreshed(self, api):
        first, second = graph_token(expires_in=30), graph_token(expires_in=3600)
        replies = [response(json_data={"access_token": first}), response(json_data={"access_token": second})]
        with patch("teams_api.requests.post", side_effect=replies) as post:
            assert api.get_access_token() == first
            assert api.get_access_token() == second

        assert post.call_count == 2

    def test_rejected_credentials(self, api):
        with patch("teams_api.requests.post", return_value=response(401, text="invalid_client")):
            with pytest.raises(TeamsAPIError) as exc_info:
                api.get_access_token()

        assert exc_info.value.status_code == 401
        assert "invalid_client" in exc_info.value.message

    def test_unparseable_token(self, api):
        with patch("teams_api.requests.post", return_value=response(json_data={"access_token": "not-a-jwt"})):
            with pytest.raises(TeamsAPIError):
                api.get_access_token()

    def test_missing_token_field(self, api):
        with patch("teams_api.requests.post", return_value=response(json_data={"error": "nope"})):
            with pytest.raises(TeamsAPIError):
                api.get_access_token()

    def test_network_failure(self, api):
        with patch("teams_api.requests.post", side_effect=requests.ConnectionError("unreachable")):
            with pytest.raises(TeamsAPIError) as exc_info:
                api.get_access_token()

        assert exc_info.value.status_code is None


class TestPostChannelMessage:

    def test_posts_message(self, api):
        token = graph_token()
        replies = [
            response(json_data={"access_token": token}),
            response(201, json_data={"id": "1616990032035"}),
        ]
        with patch("teams_api.requests.post", side_effect=replies) as post:
            result = api.post_channel_message("sec-team", "sec-alerts", "alert text")

        assert result == {"id": "1616990032035"}
        url = post.call_args[0][0]
        kwargs = post.call_args[1]
        assert url == "https://graph.microsoft.com/v1.0/teams/sec-team/channels/sec-alerts/messages"
        assert kwargs["headers"]["Authorization"] == f"Bearer {token}"
        assert kwargs["json"] == {"body": {"contentType": "text", "content": "alert text"}}

    def test_graph_error(self, api):
        replies = [
            response(json_data={"access_token": graph_token()}),
            response(403, text="Forbidden"),
        ]
        with patch("teams_api.requests.post", side_effect=replies):
            with pytest.raises(TeamsAPIError) as exc_info:
                api.post_channel_message("sec-team", "sec-alerts", "alert text")

        assert exc_info.value.status_code == 403
