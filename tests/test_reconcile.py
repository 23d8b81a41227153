from datetime import datetime, timedelta, timezone

import pytest

from vpn_server_api.config import ProfileConfig
from vpn_server_api.openvpn.profiles import ProfileRegistry
from vpn_server_api.openvpn.reconcile import capacity_reports, kill_decision, kill_decisions
from vpn_server_api.repositories.identity_store import MemoryIdentityStore
from vpn_server_api.schemas.certificate import CertificateRecord
from vpn_server_api.schemas.connection import Connection, KillReason

NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


def record(common_name, valid_to, is_revoked=False):
    return CertificateRecord(
        common_name=common_name,
        user_id="foo",
        display_name=f"{common_name} laptop",
        valid_from=NOW - timedelta(days=30),
        valid_to=valid_to,
        is_revoked=is_revoked,
    )


def connection(common_name, profile_id="internet"):
    return Connection(profile_id=profile_id, common_name=common_name, real_address="192.0.2.10:51234")


@pytest.fixture
def store():
    return MemoryIdentityStore(
        [
            record("valid", NOW + timedelta(days=1)),
            record("expired", NOW - timedelta(seconds=1)),
            record("expires-now", NOW),
            record("revoked", NOW + timedelta(days=1), is_revoked=True),
        ]
    )


class TestKillDecision:
    def test_valid_certificate(self, store):
        assert kill_decision(connection("valid"), store, NOW) is None

    def test_unknown_certificate(self, store):
        decision = kill_decision(connection("unknown"), store, NOW)
        assert decision.reason == KillReason.NOT_FOUND
        assert decision.profile_id == "internet"

    def test_expired_certificate(self, store):
        assert kill_decision(connection("expired"), store, NOW).reason == KillReason.EXPIRED

    def test_expiry_is_exclusive(self, store):
        assert kill_decision(connection("expires-now"), store, NOW) is None
        later = NOW + timedelta(microseconds=1)
        assert kill_decision(connection("expires-now"), store, later).reason == KillReason.EXPIRED

    def test_revoked_certificate(self, store):
        assert kill_decision(connection("revoked"), store, NOW).reason == KillReason.NOT_FOUND

    def test_naive_validity_is_read_as_utc(self):
        naive = record("naive", (NOW - timedelta(seconds=1)).replace(tzinfo=None))
        assert naive.valid_to.tzinfo is not None
        store = MemoryIdentityStore([naive, record("naive-valid", (NOW + timedelta(hours=1)).replace(tzinfo=None))])

        assert kill_decision(connection("naive"), store, NOW).reason == KillReason.EXPIRED
        assert kill_decision(connection("naive-valid"), store, NOW) is None

    def test_validity_in_other_timezone_is_converted(self):
        cest = timezone(timedelta(hours=2))
        converted = record("cest", datetime(2024, 5, 1, 14, 0, 0, tzinfo=cest))
        assert converted.valid_to == NOW
        assert converted.valid_to.utcoffset() == timedelta(0)


class TestKillDecisions:
    def test_one_decision_per_connection(self, store):
        connections = [
            connection("valid"),
            connection("expired"),
            connection("unknown", "office"),
            connection("unknown", "internet"),
        ]
        decisions = kill_decisions(connections, store, NOW)
        assert [(d.profile_id, d.common_name, d.reason) for d in decisions] == [
            ("internet", "expired", KillReason.EXPIRED),
            ("office", "unknown", KillReason.NOT_FOUND),
            ("internet", "unknown", KillReason.NOT_FOUND),
        ]

    def test_no_connections(self, store):
        assert kill_decisions([], store, NOW) == []

    def test_duplicate_record_is_rejected(self, store):
        with pytest.raises(ValueError):
            store.add(record("valid", NOW))


@pytest.fixture
def profiles():
    return ProfileRegistry.from_settings(
        {
            "internet": ProfileConfig(profile_number=1, range="10.42.42.0/24", vpn_proto_ports=["udp/1194"]),
            "office": ProfileConfig(profile_number=2, range="10.43.43.0/24", vpn_proto_ports=["udp/1194", "tcp/1194"]),
        }
    )


def sessions(count, profile_id):
    return [connection(f"client-{i}", profile_id) for i in range(count)]


class TestCapacityReports:
    def test_all_profiles(self, profiles):
        reports = capacity_reports({"internet": sessions(230, "internet"), "office": []}, profiles)
        assert [(r.profile_id, r.active_connection_count, r.max_connection_count, r.percentage_in_use) for r in reports] == [
            ("internet", 230, 253, 90),
            ("office", 0, 250, 0),
        ]

    def test_alert_only(self, profiles):
        connections = {"internet": sessions(230, "internet"), "office": sessions(200, "office")}
        reports = capacity_reports(connections, profiles, alert_percentage=90, alert_only=True)
        assert [r.profile_id for r in reports] == ["internet"]

    def test_alert_percentage_is_ignored_without_alert_only(self, profiles):
        reports = capacity_reports({"office": []}, profiles, alert_percentage=50)
        assert len(reports) == 1

    def test_over_capacity_is_not_clamped(self, profiles):
        (report,) = capacity_reports({"internet": sessions(300, "internet")}, profiles)
        assert report.percentage_in_use == 118

    @pytest.mark.parametrize("percentage", [-1, 101])
    def test_alert_percentage_range(self, profiles, percentage):
        with pytest.raises(ValueError):
            capacity_reports({}, profiles, alert_percentage=percentage)
