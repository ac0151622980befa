"""
Integration Tests for the Login Function

Drives fn_auth_login.main with a fake gviz client to verify:
- Credential match, the echoed session and its signed token
- 401 / 400 / 502 outcomes
"""

import pytest

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from tmt_shared.auth import verify_session_token
from tmt_shared.sheet_config import SheetName

from tests.conftest import make_request, body_of


@pytest.fixture
def login_sheet(fake_gviz):
    fake_gviz.sheets[SheetName.LOGIN.value] = [
        ["admin", "admin123", "admin", "Administrator"],
        ["SUPER", "1234", "user", "Super Brand"],
    ]
    return fake_gviz


@pytest.mark.integration
class TestLogin:
    """POST /auth/login"""

    def test_successful_login(self, wire, login_sheet):
        from fn_auth_login import main
        with wire("fn_auth_login"):
            response = main(make_request("POST", {"username": "SUPER", "password": "1234"}, username=None))

        assert response.status_code == 200
        body = body_of(response)
        assert body["status"] == "OK"
        assert body["trace_id"].startswith("trace-")
        assert body["user"]["username"] == "SUPER"
        assert body["user"]["display_name"] == "Super Brand"
        assert body["user"]["is_admin"] is False
        assert body["expires_at"] > 0

        session = verify_session_token(body["token"])
        assert session.username == "SUPER"
        assert not session.is_admin

    def test_admin_login(self, wire, login_sheet):
        from fn_auth_login import main
        with wire("fn_auth_login"):
            response = main(make_request("POST", {"username": "admin", "password": "admin123"}, username=None))

        user = body_of(response)["user"]
        assert user["is_full_admin"] is True
        assert user["department"] == "all"

    def test_invalid_credentials(self, wire, login_sheet):
        from fn_auth_login import main
        with wire("fn_auth_login"):
            response = main(make_request("POST", {"username": "SUPER", "password": "wrong"}, username=None))

        assert response.status_code == 401
        assert body_of(response)["status"] == "INVALID_CREDENTIALS"

    def test_missing_password(self, wire, login_sheet):
        from fn_auth_login import main
        with wire("fn_auth_login"):
            response = main(make_request("POST", {"username": "SUPER"}, username=None))

        assert response.status_code == 400
        assert body_of(response)["status"] == "ERROR"

    def test_malformed_body(self, wire, login_sheet):
        from fn_auth_login import main
        with wire("fn_auth_login"):
            response = main(make_request("POST", b"not json", username=None))

        assert response.status_code == 400

    def test_login_sheet_unavailable(self, wire, fake_gviz):
        fake_gviz.fail(SheetName.LOGIN)
        from fn_auth_login import main
        with wire("fn_auth_login"):
            response = main(make_request("POST", {"username": "SUPER", "password": "1234"}, username=None))

        assert response.status_code == 502
        assert body_of(response)["status"] == "UPSTREAM_ERROR"

    def test_token_carries_sheet_user_type(self, wire, login_sheet):
        from fn_auth_login import main
        with wire("fn_auth_login"):
            response = main(make_request("POST", {"username": "admin", "password": "admin123"}, username=None))

        assert verify_session_token(body_of(response)["token"]).is_full_admin

    def test_missing_secret(self, wire, login_sheet, monkeypatch):
        monkeypatch.delenv("SESSION_SECRET")
        from fn_auth_login import main
        with wire("fn_auth_login"):
            response = main(make_request("POST", {"username": "SUPER", "password": "1234"}, username=None))

        assert response.status_code == 500
        assert "token" not in body_of(response)
