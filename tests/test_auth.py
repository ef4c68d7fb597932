"""
Tests for operator login, first-login bootstrap and bearer authentication.
"""
import pytest
from sqlalchemy import select

from dossier.config import settings
from dossier.core.security import create_access_token, issue_token
from dossier.models.audit_log import AuditLog, ActionType
from dossier.services.operator_service import OperatorService

LOGIN_URL = "/api/v1/login"
ME_URL = "/api/v1/me"
PASSWORD = "correct horse battery staple"


class TestBootstrapLogin:
    """Tests for the first login against an empty operator table."""

    @pytest.mark.asyncio
    async def test_first_login_creates_master(self, async_client, db_session):
        """The first successful login provisions a master operator."""
        response = await async_client.post(LOGIN_URL, json={"email": "First@Dossier.io", "password": "pw1"})

        assert response.status_code == 200
        data = response.json()
        assert data["is_master"] is True
        assert data["email"] == "first@dossier.io"
        assert data["token_type"] == "bearer"

        operator = await OperatorService.get_operator_by_email(db_session, "first@dossier.io")
        assert operator.is_master is True
        assert operator.last_login_at is not None

    @pytest.mark.asyncio
    async def test_bootstrap_happens_once(self, async_client):
        """Once an operator exists, unknown emails are rejected."""
        await async_client.post(LOGIN_URL, json={"email": "first@dossier.io", "password": "pw1"})

        response = await async_client.post(LOGIN_URL, json={"email": "second@dossier.io", "password": "pw2"})

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid credentials"

    @pytest.mark.asyncio
    async def test_bootstrap_is_audited(self, async_client, db_session):
        await async_client.post(LOGIN_URL, json={"email": "first@dossier.io", "password": "pw1"})

        result = await db_session.execute(select(AuditLog.action_type))
        actions = set(result.scalars().all())
        assert ActionType.OPERATOR_BOOTSTRAPPED in actions
        assert ActionType.OPERATOR_LOGIN in actions

    @pytest.mark.asyncio
    async def test_bootstrap_master_guard(self, db_session, analyst):
        """The guarded insert does nothing when an operator already exists."""
        assert await OperatorService.bootstrap_master(db_session, "late@dossier.io", "pw") is None


class TestLogin:
    """Tests for login against existing operators."""

    @pytest.mark.asyncio
    async def test_login_success(self, async_client, master):
        response = await async_client.post(LOGIN_URL, json={"email": "CHIEF@dossier.io", "password": PASSWORD})

        assert response.status_code == 200
        data = response.json()
        assert data["operator_id"] == master.id
        assert data["is_master"] is True
        assert data["token"].count(".") == 2

    @pytest.mark.asyncio
    async def test_wrong_password(self, async_client, master):
        response = await async_client.post(LOGIN_URL, json={"email": master.email, "password": "nope"})

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid credentials"

    @pytest.mark.asyncio
    async def test_unknown_email_looks_like_wrong_password(self, async_client, master):
        response = await async_client.post(LOGIN_URL, json={"email": "ghost@dossier.io", "password": PASSWORD})

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid credentials"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [{}, {"email": "chief@dossier.io"}, {"password": "x"}, {"email": "", "password": ""}])
    async def test_missing_fields(self, async_client, master, body):
        response = await async_client.post(LOGIN_URL, json=body)

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_disabled_operator(self, async_client, db_session, master, analyst):
        await OperatorService.update_operator(db_session, master, analyst.id, is_disabled=True)

        response = await async_client.post(LOGIN_URL, json={"email": analyst.email, "password": PASSWORD})

        assert response.status_code == 403
        assert response.json()["detail"] == "Account disabled"

    @pytest.mark.asyncio
    async def test_login_without_secret_key(self, async_client, master, monkeypatch):
        """Login is refused when no signing secret is configured."""
        monkeypatch.setattr(settings, "SECRET_KEY", "")

        response = await async_client.post(LOGIN_URL, json={"email": master.email, "password": PASSWORD})

        assert response.status_code == 500


class TestBearerAuthentication:
    """Tests for the current-operator dependency."""

    @pytest.mark.asyncio
    async def test_me_with_login_token(self, async_client, analyst):
        login = await async_client.post(LOGIN_URL, json={"email": analyst.email, "password": PASSWORD})
        token = login.json()["token"]

        response = await async_client.get(ME_URL, headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 200
        data = response.json()
        assert data["id"] == analyst.id
        assert data["is_master"] is False
        assert "admins" not in data["allowed_sections"]["mainTabs"]
        assert data["allowed_sections"]["permissions"]["manageShares"] is True

    @pytest.mark.asyncio
    async def test_me_without_token(self, async_client, analyst):
        response = await async_client.get(ME_URL)

        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("header", ["Bearer garbage", "Bearer a.b.c", "Basic Zm9vOmJhcg==", "Bearer"])
    async def test_me_with_bad_header(self, async_client, analyst, header):
        response = await async_client.get(ME_URL, headers={"Authorization": header})

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_token_signed_with_other_secret(self, async_client, analyst):
        token = issue_token({"sub": str(analyst.id), "ver": 0}, "x" * 40)

        response = await async_client.get(ME_URL, headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_token_for_unknown_operator(self, async_client, analyst):
        token = create_access_token(9999, "ghost@dossier.io", 0)

        response = await async_client.get(ME_URL, headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_token_with_non_numeric_subject(self, async_client, analyst):
        token = issue_token({"sub": "analyst", "ver": 0}, settings.SECRET_KEY)

        response = await async_client.get(ME_URL, headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_force_logout_revokes_old_tokens(self, async_client, db_session, master, analyst, auth_headers):
        """Bumping token_version invalidates every token issued before."""
        old_headers = auth_headers(analyst)
        assert (await async_client.get(ME_URL, headers=old_headers)).status_code == 200

        analyst = await OperatorService.update_operator(db_session, master, analyst.id, force_logout=True)

        assert (await async_client.get(ME_URL, headers=old_headers)).status_code == 401
        assert (await async_client.get(ME_URL, headers=auth_headers(analyst))).status_code == 200

    @pytest.mark.asyncio
    async def test_disabled_operator_token_rejected(self, async_client, db_session, master, analyst, auth_headers):
        headers = auth_headers(analyst)
        await OperatorService.update_operator(db_session, master, analyst.id, is_disabled=True)

        assert (await async_client.get(ME_URL, headers=headers)).status_code == 401
