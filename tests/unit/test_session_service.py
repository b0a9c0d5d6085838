"""ABOUTME: Unit tests for the session manager
ABOUTME: Covers creation, the concurrent session cap, fingerprint validation, timeouts and cleanup"""

from datetime import timedelta

import pytest

from charityguard.adapters.memory import InMemorySessionTable
from charityguard.config import SecurityCfg
from charityguard.domain.sessions import compute_fingerprint
from charityguard.service_layer.session_service import SessionManager

USER = "alice@charity.org"
IP = "203.0.113.7"
AGENT = "Mozilla/5.0 (X11; Linux x86_64)"


@pytest.fixture
def sessions(clock):
    return SessionManager(table=InMemorySessionTable(), settings=SecurityCfg(), clock=clock)


def _fingerprint(user: str = USER, ip: str = IP, agent: str = AGENT) -> str:
    return compute_fingerprint(user, ip, agent)


class TestCreateSession:
    """Test session admission."""

    def test_create_session_returns_view(self, sessions, clock):
        session = sessions.create_session(USER, IP, AGENT, device_id="phone-1", metadata={"role": "manager"})

        assert len(session.session_id) == 64
        assert session.user_id == USER
        assert session.fingerprint == _fingerprint()
        assert session.expires_at == clock.now + timedelta(hours=24)
        assert session.remaining_time == timedelta(hours=24)
        assert session.device_id == "phone-1"
        assert session.metadata == {"role": "manager"}

    def test_get_session(self, sessions):
        created = sessions.create_session(USER, IP, AGENT)

        found = sessions.get_session(created.session_id)

        assert found is not None
        assert found.session_id == created.session_id
        assert sessions.get_session("missing") is None

    def test_cap_evicts_least_recently_active_session(self, sessions, clock):
        """Test that admitting a fourth session removes the one idle the longest."""
        first = sessions.create_session(USER, IP, AGENT)
        clock.advance(minutes=1)
        second = sessions.create_session(USER, IP, AGENT)
        clock.advance(minutes=1)
        third = sessions.create_session(USER, IP, AGENT)
        clock.advance(minutes=1)
        sessions.update_activity(first.session_id)
        clock.advance(minutes=1)

        fourth = sessions.create_session(USER, IP, AGENT)

        remaining = {s.session_id for s in sessions.get_user_sessions(USER)}
        assert remaining == {first.session_id, third.session_id, fourth.session_id}
        assert sessions.get_session(second.session_id) is None

    def test_cap_is_per_user(self, sessions):
        for _ in range(3):
            sessions.create_session(USER, IP, AGENT)

        sessions.create_session("sam@charity.org", IP, AGENT)

        assert len(sessions.get_user_sessions(USER)) == 3
        assert len(sessions.get_user_sessions("sam@charity.org")) == 1

    def test_cap_of_one(self, clock):
        sessions = SessionManager(
            table=InMemorySessionTable(), settings=SecurityCfg(max_concurrent_sessions=1), clock=clock
        )
        first = sessions.create_session(USER, IP, AGENT)

        second = sessions.create_session(USER, IP, AGENT)

        assert [s.session_id for s in sessions.get_user_sessions(USER)] == [second.session_id]
        assert sessions.get_session(first.session_id) is None


class TestValidateSession:
    """Test fingerprint, idle and absolute expiry checks."""

    def test_matching_fingerprint_is_valid(self, sessions):
        session = sessions.create_session(USER, IP, AGENT)

        assert sessions.validate_session(session.session_id, _fingerprint(), IP) is True

    def test_fingerprint_mismatch_destroys_session(self, sessions):
        """Test that a different user agent is treated as a hijack attempt."""
        session = sessions.create_session(USER, IP, AGENT)

        assert sessions.validate_session(session.session_id, _fingerprint(agent="curl/8.0")) is False

        assert sessions.get_session(session.session_id) is None
        assert sessions.validate_session(session.session_id, _fingerprint()) is False

    def test_ip_change_alone_is_tolerated(self, sessions):
        session = sessions.create_session(USER, IP, AGENT)

        assert sessions.validate_session(session.session_id, _fingerprint(), "198.51.100.20") is True

    def test_unknown_session_is_invalid(self, sessions):
        assert sessions.validate_session("missing", _fingerprint()) is False

    def test_idle_session_is_invalid(self, sessions, clock):
        session = sessions.create_session(USER, IP, AGENT)

        clock.advance(minutes=31)

        assert sessions.validate_session(session.session_id, _fingerprint()) is False
        assert sessions.get_session(session.session_id) is None

    def test_activity_keeps_session_alive(self, sessions, clock):
        session = sessions.create_session(USER, IP, AGENT)
        for _ in range(3):
            clock.advance(minutes=20)
            assert sessions.update_activity(session.session_id) is True

        assert sessions.validate_session(session.session_id, _fingerprint()) is True

    def test_absolute_timeout_applies_despite_activity(self, sessions, clock):
        """Test that a session ends after its lifetime even when it is in constant use."""
        session = sessions.create_session(USER, IP, AGENT)
        for _ in range(48):
            clock.advance(minutes=30)
            sessions.update_activity(session.session_id)

        assert sessions.get_session(session.session_id) is None
        assert sessions.update_activity(session.session_id) is False


class TestSessionLifecycle:
    def test_update_metadata(self, sessions):
        session = sessions.create_session(USER, IP, AGENT, metadata={"role": "manager"})

        assert sessions.update_metadata(session.session_id, {"theme": "dark"}) is True

        found = sessions.get_session(session.session_id)
        assert found is not None
        assert found.metadata == {"role": "manager", "theme": "dark"}
        assert sessions.update_metadata("missing", {"theme": "dark"}) is False

    def test_destroy_session(self, sessions):
        session = sessions.create_session(USER, IP, AGENT)

        assert sessions.destroy_session(session.session_id) is True
        assert sessions.destroy_session(session.session_id) is False

    def test_destroy_user_sessions(self, sessions):
        sessions.create_session(USER, IP, AGENT)
        sessions.create_session(USER, IP, AGENT)
        other = sessions.create_session("sam@charity.org", IP, AGENT)

        assert sessions.destroy_user_sessions(USER) == 2

        assert sessions.get_user_sessions(USER) == []
        assert sessions.get_session(other.session_id) is not None

    def test_user_sessions_are_most_recent_first(self, sessions, clock):
        first = sessions.create_session(USER, IP, AGENT)
        clock.advance(minutes=1)
        second = sessions.create_session(USER, IP, AGENT)

        found = sessions.get_user_sessions(USER)

        assert [s.session_id for s in found] == [second.session_id, first.session_id]

    def test_view_serialises_for_api(self, sessions, clock):
        session = sessions.create_session(USER, IP, AGENT)
        clock.advance(minutes=10)

        data = sessions.get_user_sessions(USER)[0].to_dict()

        assert data["sessionId"] == session.session_id
        assert data["ipAddress"] == IP
        assert data["activitySeconds"] == 600
        assert "fingerprint" not in data


class TestCleanupAndStatistics:
    def test_cleanup_removes_idle_and_expired_sessions(self, sessions, clock):
        """Test that cleanup is idempotent."""
        sessions.create_session(USER, IP, AGENT)
        clock.advance(minutes=20)
        active = sessions.create_session("sam@charity.org", IP, AGENT)
        clock.advance(minutes=15)

        assert sessions.cleanup() == 1
        assert sessions.cleanup() == 0
        assert sessions.get_session(active.session_id) is not None

    def test_statistics(self, sessions, clock):
        sessions.create_session(USER, IP, AGENT)
        clock.advance(minutes=10)
        sessions.create_session(USER, IP, AGENT)
        sessions.create_session("sam@charity.org", IP, AGENT)

        stats = sessions.get_statistics()

        assert stats.total_sessions == 3
        assert stats.active_sessions == 3
        assert stats.expired_sessions == 0
        assert stats.unique_users == 2
        assert stats.average_session_age_seconds == pytest.approx(200.0)
        assert stats.to_dict()["uniqueUsers"] == 2

    def test_statistics_when_empty(self, sessions):
        stats = sessions.get_statistics()

        assert stats.total_sessions == 0
        assert stats.average_session_age_seconds == 0.0

    def test_cleanup_task_uses_configured_interval(self, sessions):
        assert sessions.cleanup_task.interval == timedelta(minutes=5)
        assert sessions.cleanup_task.is_running is False
