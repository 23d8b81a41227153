"""
Decides which live sessions must go, and how full each profile is.
Pure functions over data that was already fetched; no I/O besides the
identity store lookups.
"""
from datetime import datetime
from typing import Iterable

from vpn_server_api.openvpn.profiles import ProfileRegistry
from vpn_server_api.openvpn.server_manager import capacity_report
from vpn_server_api.repositories.identity_store import IdentityStore
from vpn_server_api.schemas.connection import CapacityReport, Connection, KillDecision, KillReason

DEFAULT_ALERT_PERCENTAGE = 90


def kill_decision(connection: Connection, identity_store: IdentityStore, now: datetime) -> KillDecision | None:
    record = identity_store.lookup(connection.common_name)
    if record is None or record.is_revoked:
        reason = KillReason.NOT_FOUND
    elif now > record.valid_to:
        reason = KillReason.EXPIRED
    else:
        return None
    return KillDecision(profile_id=connection.profile_id, common_name=connection.common_name, reason=reason)


def kill_decisions(
    connections: Iterable[Connection],
    identity_store: IdentityStore,
    now: datetime,
) -> list[KillDecision]:
    """
    One decision per connection whose certificate is gone, revoked or expired.
    `now` is the cutoff for the whole batch.
    """
    decisions = []
    for connection in connections:
        decision = kill_decision(connection, identity_store, now)
        if decision is not None:
            decisions.append(decision)
    return decisions


def capacity_reports(
    connections_by_profile: dict[str, list[Connection]],
    profiles: ProfileRegistry,
    alert_percentage: int = DEFAULT_ALERT_PERCENTAGE,
    alert_only: bool = False,
) -> list[CapacityReport]:
    """With alert_only, only profiles at or above alert_percentage are reported."""
    if not 0 <= alert_percentage <= 100:
        raise ValueError("alert_percentage must be between 0 and 100")
    reports = []
    for profile_id, connections in connections_by_profile.items():
        report = capacity_report(profiles.get(profile_id), len(connections))
        if alert_only and report.percentage_in_use < alert_percentage:
            continue
        reports.append(report)
    return reports
