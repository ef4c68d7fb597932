"""
Tests for writing and browsing the audit trail.
"""
from datetime import datetime, timedelta, timezone

import pytest

from dossier.models.audit_log import ActionType, UserType
from dossier.services.audit_service import AuditService, AuditLogFilter

AUDIT_URL = "/api/v1/audit-logs"
SHARE_TOKEN = "0123456789abcdef0123456789abcdef"


class TestAuditService:
    """Tests for AuditService at the session level."""

    @pytest.mark.asyncio
    async def test_log_action_masks_payloads(self, db_session, master):
        entry = await AuditService.log_action(
            db_session,
            ActionType.SHARE_LINK_ACCESSED,
            UserType.VIEWER,
            resource_type="share_link",
            resource_id=1,
            request_data={"token": SHARE_TOKEN, "lat": 48.856613, "lng": 2.352222},
            user_agent="x" * 2000,
        )

        assert entry.id is not None
        assert entry.request_data == {"token": "01234567...", "lat": 48.86, "lng": 2.35}
        assert len(entry.user_agent) == 512

    @pytest.mark.asyncio
    async def test_filters_and_pagination(self, db_session, master, analyst):
        for _ in range(3):
            await AuditService.log_action(db_session, ActionType.OPERATOR_LOGIN, UserType.OPERATOR, user_id=master.id)
        await AuditService.log_action(
            db_session, ActionType.PERMISSION_DENIED, UserType.OPERATOR, user_id=analyst.id, status="error"
        )

        logs, total = await AuditService.get_audit_logs(
            db_session, AuditLogFilter(action_type=ActionType.OPERATOR_LOGIN), limit=2
        )
        assert total == 3
        assert len(logs) == 2

        logs, total = await AuditService.get_audit_logs(db_session, AuditLogFilter(status="error"))
        assert total == 1
        assert logs[0].user_id == analyst.id

    @pytest.mark.asyncio
    async def test_date_range(self, db_session, master):
        await AuditService.log_action(db_session, ActionType.OPERATOR_LOGIN, UserType.OPERATOR, user_id=master.id)
        tomorrow = datetime.now(timezone.utc) + timedelta(days=1)

        _, total = await AuditService.get_audit_logs(db_session, AuditLogFilter(start_date=tomorrow))
        assert total == 0

        _, total = await AuditService.get_audit_logs(db_session)
        assert total == 1


class TestAuditEndpoint:
    """Tests for GET /audit-logs."""

    @pytest.mark.asyncio
    async def test_master_browses_trail(self, async_client, db_session, master, auth_headers):
        await AuditService.log_action(db_session, ActionType.OPERATOR_LOGIN, UserType.OPERATOR, user_id=master.id)

        response = await async_client.get(AUDIT_URL, headers=auth_headers(master))

        assert response.status_code == 200
        data = response.json()
        assert set(data) == {"logs", "total", "limit", "offset"}
        assert data["limit"] == 100
        assert data["offset"] == 0

    @pytest.mark.asyncio
    async def test_filter_by_action(self, async_client, db_session, master, analyst, auth_headers):
        await AuditService.log_action(db_session, ActionType.OPERATOR_LOGIN, UserType.OPERATOR, user_id=analyst.id)
        await AuditService.log_action(db_session, ActionType.OPERATOR_CREATED, UserType.OPERATOR, user_id=master.id)

        response = await async_client.get(
            AUDIT_URL,
            headers=auth_headers(master),
            params={"action_type": "operator_login"}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["logs"][0]["user_id"] == analyst.id

    @pytest.mark.asyncio
    async def test_unknown_resource_type_rejected(self, async_client, master, auth_headers):
        response = await async_client.get(
            AUDIT_URL,
            headers=auth_headers(master),
            params={"resource_type": "document"}
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_non_master_denied(self, async_client, analyst, auth_headers):
        response = await async_client.get(AUDIT_URL, headers=auth_headers(analyst))

        assert response.status_code == 403
