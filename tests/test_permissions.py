"""Unit tests for docarchive.security.permissions — guards, navigation, RoleGate."""

import asyncio
from unittest.mock import AsyncMock, call

import pytest

from docarchive.documents.models import UserRole
from docarchive.engine.identity import Identity
from docarchive.engine.logging import init_activity_log
from docarchive.security.permissions import (
    ADMIN_ONLY,
    ANY_AUTHENTICATED,
    RoleCheckStatus,
    RoleGate,
    is_permitted,
    nav_items,
    requires_admin,
    requires_user,
)

ALICE = Identity("alice")
BOB = Identity("bob")


def _returning(role):
    async def fetch():
        return role
    return fetch


async def _hang():
    await asyncio.Event().wait()


class TestGuards:
    def test_requires_user(self):
        assert requires_user(UserRole.ADMIN)
        assert requires_user(UserRole.USER)
        assert not requires_user(UserRole.GUEST)
        assert not requires_user(None)

    def test_requires_admin(self):
        assert requires_admin(UserRole.ADMIN)
        assert not requires_admin(UserRole.USER)

    def test_guest_never_passes(self):
        assert not is_permitted(UserRole.GUEST, ())
        assert not is_permitted(UserRole.GUEST, ANY_AUTHENTICATED)
        assert not is_permitted(None, ())

    def test_composed_guards(self):
        assert is_permitted(UserRole.ADMIN, ADMIN_ONLY)
        assert not is_permitted(UserRole.USER, ADMIN_ONLY)
        assert is_permitted(UserRole.USER, ANY_AUTHENTICATED)


class TestNavItems:
    def test_admin_sees_everything(self):
        labels = [i["label"] for i in nav_items(UserRole.ADMIN)]
        assert labels == ["Dashboard", "Documents", "Upload", "Settings", "Users"]

    def test_user_sees_no_admin_entries(self):
        labels = [i["label"] for i in nav_items(UserRole.USER)]
        assert labels == ["Dashboard", "Documents", "Upload"]

    def test_guest_sees_nothing(self):
        assert nav_items(UserRole.GUEST) == []
        assert nav_items(None) == []


class TestRoleGateResolution:
    @pytest.mark.asyncio
    async def test_authorized(self):
        transitions = []
        gate = RoleGate(_returning(UserRole.ADMIN), on_change=lambda g: transitions.append(g.status))
        gate.start(ALICE)
        assert gate.status == RoleCheckStatus.CHECKING
        assert await gate.wait() == RoleCheckStatus.AUTHORIZED
        assert gate.role == UserRole.ADMIN
        assert gate.is_admin and gate.is_user
        assert transitions == [RoleCheckStatus.CHECKING, RoleCheckStatus.AUTHORIZED]

    @pytest.mark.asyncio
    async def test_user_on_admin_view_is_unauthorized(self):
        gate = RoleGate(_returning(UserRole.USER), ADMIN_ONLY)
        gate.start(ALICE)
        assert await gate.wait() == RoleCheckStatus.UNAUTHORIZED
        assert gate.role == UserRole.USER
        assert not gate.is_admin

    @pytest.mark.asyncio
    async def test_guest_is_unauthorized(self):
        gate = RoleGate(_returning("guest"))
        gate.start(ALICE)
        assert await gate.wait() == RoleCheckStatus.UNAUTHORIZED
        assert gate.role == UserRole.GUEST

    @pytest.mark.asyncio
    async def test_no_identity_is_unauthenticated(self):
        fetch = AsyncMock(return_value=UserRole.ADMIN)
        gate = RoleGate(fetch)
        gate.start(None)
        assert await gate.wait() == RoleCheckStatus.UNAUTHENTICATED
        fetch.assert_not_called()

    @pytest.mark.asyncio
    async def test_denial_logged(self, tmp_path):
        activity = init_activity_log(str(tmp_path))
        gate = RoleGate(_returning(UserRole.USER), ADMIN_ONLY, route="/settings")
        gate.start(BOB)
        await gate.wait()
        entry = activity.query("security")[0]
        assert entry["event"] == "access_denied"
        assert entry["principal"] == "bob"
        assert entry["route"] == "/settings"

    @pytest.mark.asyncio
    async def test_snapshot(self):
        gate = RoleGate(_returning(UserRole.USER))
        gate.start(ALICE)
        await gate.wait()
        assert gate.snapshot() == {
            "status": "authorized",
            "role": "user",
            "error": "",
            "timed_out": False,
            "attempts": 1,
        }


class TestRoleGateTimeout:
    @pytest.mark.asyncio
    async def test_deadline_gives_timed_out_error(self):
        gate = RoleGate(_hang, timeout=0.05)
        gate.start(ALICE)
        assert await gate.wait() == RoleCheckStatus.ERROR
        assert gate.timed_out is True
        assert gate.error == "Permission check timed out"
        assert gate.role is None

    @pytest.mark.asyncio
    async def test_retry_starts_fresh_deadline(self):
        calls = 0

        async def fetch():
            nonlocal calls
            calls += 1
            if calls == 1:
                await _hang()
            return UserRole.ADMIN

        gate = RoleGate(fetch, timeout=0.05)
        gate.start(ALICE)
        await gate.wait()
        first_deadline = gate.deadline

        gate.retry()
        assert gate.status == RoleCheckStatus.CHECKING
        assert gate.deadline > first_deadline
        assert gate.error is None and gate.timed_out is False
        assert await gate.wait() == RoleCheckStatus.AUTHORIZED

    @pytest.mark.asyncio
    async def test_retry_ignored_outside_error(self):
        fetch = AsyncMock(return_value=UserRole.USER)
        gate = RoleGate(fetch)
        gate.start(ALICE)
        await gate.wait()
        gate.retry()
        assert gate.status == RoleCheckStatus.AUTHORIZED
        assert fetch.await_count == 1

    @pytest.mark.asyncio
    async def test_deadline_cancelled_after_resolution(self):
        gate = RoleGate(_returning(UserRole.USER), timeout=0.02)
        gate.start(ALICE)
        await gate.wait()
        await asyncio.sleep(0.05)
        assert gate.status == RoleCheckStatus.AUTHORIZED

    @pytest.mark.asyncio
    async def test_close_cancels_timer_and_fetch(self):
        changes = []
        gate = RoleGate(_hang, timeout=0.02, on_change=lambda g: changes.append(g.status))
        gate.start(ALICE)
        gate.close()
        await asyncio.sleep(0.05)
        assert changes == [RoleCheckStatus.CHECKING]
        assert not gate.timed_out


class TestRoleGateRetries:
    def test_backoff_delay_capped(self):
        gate = RoleGate(_hang, backoff_base=1.0, backoff_cap=5.0)
        assert [gate.backoff_delay(n) for n in range(5)] == [1.0, 2.0, 4.0, 5.0, 5.0]

    @pytest.mark.asyncio
    async def test_failed_fetch_exhausts_retries(self):
        sleep = AsyncMock()
        fetch = AsyncMock(side_effect=RuntimeError("down"))
        gate = RoleGate(fetch, retries=2, sleep=sleep)
        gate.start(ALICE)
        assert await gate.wait() == RoleCheckStatus.ERROR
        assert gate.error == "Permission check failed: down"
        assert gate.timed_out is False
        assert gate.attempts == 3
        assert fetch.await_count == 3
        assert sleep.await_args_list == [call(1.0), call(2.0)]

    @pytest.mark.asyncio
    async def test_recovers_on_retry(self):
        fetch = AsyncMock(side_effect=[RuntimeError("blip"), UserRole.USER])
        gate = RoleGate(fetch, retries=2, sleep=AsyncMock())
        gate.start(ALICE)
        assert await gate.wait() == RoleCheckStatus.AUTHORIZED
        assert gate.attempts == 2

    @pytest.mark.asyncio
    async def test_no_retries(self):
        fetch = AsyncMock(side_effect=RuntimeError("down"))
        gate = RoleGate(fetch, retries=0, sleep=AsyncMock())
        gate.start(ALICE)
        await gate.wait()
        assert fetch.await_count == 1


class TestRoleGateIdentity:
    @pytest.mark.asyncio
    async def test_same_principal_keeps_state(self):
        fetch = AsyncMock(return_value=UserRole.USER)
        gate = RoleGate(fetch)
        gate.start(ALICE)
        await gate.wait()
        gate.identity_changed(Identity("alice", token="refreshed"))
        assert gate.status == RoleCheckStatus.AUTHORIZED
        assert fetch.await_count == 1

    @pytest.mark.asyncio
    async def test_new_principal_restarts_from_error(self):
        fetch = AsyncMock(side_effect=[RuntimeError("down"), UserRole.ADMIN])
        gate = RoleGate(fetch, retries=0, sleep=AsyncMock())
        gate.start(ALICE)
        assert await gate.wait() == RoleCheckStatus.ERROR

        gate.identity_changed(BOB)
        assert gate.status == RoleCheckStatus.CHECKING
        assert gate.error is None
        assert await gate.wait() == RoleCheckStatus.AUTHORIZED
        assert gate.identity == BOB

    @pytest.mark.asyncio
    async def test_logout_is_unauthenticated(self):
        gate = RoleGate(_returning(UserRole.USER))
        gate.start(ALICE)
        await gate.wait()
        gate.identity_changed(None)
        assert gate.status == RoleCheckStatus.UNAUTHENTICATED
