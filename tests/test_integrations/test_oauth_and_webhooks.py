"""Tests for OAuth state signing and Intuit webhook signature checks."""

from __future__ import annotations

import base64
import hashlib
import hmac
import uuid

import pytest
from fastapi import HTTPException

from exitosx.api.routes.integrations import parse_oauth_state, sign_oauth_state, verify_intuit_signature
from exitosx.config import settings

COMPANY_ID = uuid.UUID("12345678-1234-5678-1234-567812345678")
USER_ID = uuid.UUID("abcdefab-cdef-abcd-efab-cdefabcdefab")


class TestOAuthState:
    def test_round_trip(self):
        state = sign_oauth_state(COMPANY_ID, USER_ID)
        assert parse_oauth_state(state) == (COMPANY_ID, USER_ID)

    def test_tampered_company_rejected(self):
        state = sign_oauth_state(COMPANY_ID, USER_ID)
        other = uuid.UUID("00000000-0000-0000-0000-000000000001")
        forged = state.replace(str(COMPANY_ID), str(other))

        with pytest.raises(HTTPException) as exc_info:
            parse_oauth_state(forged)
        assert exc_info.value.status_code == 400

    def test_signed_with_other_key_rejected(self, monkeypatch):
        state = sign_oauth_state(COMPANY_ID, USER_ID)
        monkeypatch.setattr(settings, "exitosx_api_key", "rotated-key")

        with pytest.raises(HTTPException):
            parse_oauth_state(state)

    @pytest.mark.parametrize("state", ["", "not-a-state", f"{COMPANY_ID}:nope:sig"])
    def test_malformed_state(self, state):
        with pytest.raises(HTTPException) as exc_info:
            parse_oauth_state(state)
        assert exc_info.value.detail == "Invalid OAuth state"


class TestIntuitSignature:
    PAYLOAD = b'{"eventNotifications": []}'

    def _sign(self, token: str) -> str:
        return base64.b64encode(hmac.new(token.encode(), self.PAYLOAD, hashlib.sha256).digest()).decode()

    def test_valid_signature(self, monkeypatch):
        monkeypatch.setattr(settings, "quickbooks_webhook_verifier_token", "verifier")
        assert verify_intuit_signature(self.PAYLOAD, self._sign("verifier")) is True

    def test_wrong_signature(self, monkeypatch):
        monkeypatch.setattr(settings, "quickbooks_webhook_verifier_token", "verifier")
        assert verify_intuit_signature(self.PAYLOAD, self._sign("other")) is False

    def test_missing_signature(self, monkeypatch):
        monkeypatch.setattr(settings, "quickbooks_webhook_verifier_token", "verifier")
        assert verify_intuit_signature(self.PAYLOAD, None) is False

    def test_unconfigured_token_only_passes_in_development(self, monkeypatch):
        monkeypatch.setattr(settings, "quickbooks_webhook_verifier_token", "")
        monkeypatch.setattr(settings, "exitosx_env", "development")
        assert verify_intuit_signature(self.PAYLOAD, None) is True

        monkeypatch.setattr(settings, "exitosx_env", "production")
        assert verify_intuit_signature(self.PAYLOAD, None) is False
