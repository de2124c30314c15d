#!/usr/bin/env python3
"""
Microsoft Graph client used to post security alerts into a Teams channel.
"""
import requests
import jwt
import json
import logging
from typing import Dict, Optional, Any
from dataclasses import dataclass
from datetime import datetime

logger = logging.getLogger(__name__)


@dataclass
class AppToken:
    access_token: str
    expires_at: int


class TeamsAPIError(Exception):
    def __init__(self, message: str, status_code: int = None):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class TeamsAPI:
    GRAPH_BASE_URL = "https://graph.microsoft.com/v1.0"
    TOKEN_URL = "https://login.microsoftonline.com/{tenant}/oauth2/v2.0/token"
    GRAPH_SCOPE = "https://graph.microsoft.com/.default"
    EXPIRY_MARGIN = 60

    def __init__(self, client_id: str, client_secret: str, tenant_id: str, timeout: float = 10.0):
        self.client_id = client_id
        self.client_secret = client_secret
        self.tenant_id = tenant_id
        self.timeout = timeout
        self._token: Optional[AppToken] = None

    def get_access_token(self) -> str:
        if self._token and self._token.expires_at - self.EXPIRY_MARGIN > datetime.now().timestamp():
            return self._token.access_token

        body = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "grant_type": "client_credentials",
            "scope": self.GRAPH_SCOPE,
        }

        try:
            response = requests.post(
                self.TOKEN_URL.format(tenant=self.tenant_id), data=body, timeout=self.timeout
            )
        except requests.RequestException as e:
            raise TeamsAPIError(f"Token request failed: {str(e)}")

        if response.status_code != 200:
            raise TeamsAPIError(f"Failed to obtain Graph token: {response.text}", response.status_code)

        try:
            access_token = response.json()["access_token"]
            decoded = jwt.decode(access_token, options={"verify_signature": False})
        except (KeyError, json.JSONDecodeError, jwt.DecodeError) as e:
            raise TeamsAPIError(f"Failed to parse Graph token: {str(e)}")

        self._token = AppToken(access_token=access_token, expires_at=decoded.get("exp", 0))
        logger.info("Obtained Graph token for tenant %s", decoded.get("tid", self.tenant_id))
        return access_token

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.get_access_token()}",
            "Content-Type": "application/json",
        }

    def post_channel_message(self, team_id: str, channel_id: str, content: str) -> Dict[str, Any]:
        url = f"{self.GRAPH_BASE_URL}/teams/{team_id}/channels/{channel_id}/messages"
        payload = {"body": {"contentType": "text", "content": content}}

        try:
            response = requests.post(url, headers=self._get_headers(), json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise TeamsAPIError(f"Channel message request failed: {str(e)}")

        if response.status_code not in (200, 201):
            raise TeamsAPIError(f"Failed to post channel message: {response.text}", response.status_code)

        try:
            return response.json()
        except json.JSONDecodeError as e:
            raise TeamsAPIError(f"Failed to parse channel message response: {str(e)}")
