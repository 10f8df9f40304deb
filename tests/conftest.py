from __future__ import annotations

from typing import Any, Mapping

import pytest

from hailcrm.models.domain import HailDamageZone, Lead, Location


class DummyRemote:
    """Stands in for the remote CRM API; records calls and fails on demand."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict]] = []
        self.fail_on: set[str] = set()
        self.leads: list[Lead] = []
        self.zones: list[HailDamageZone] = []
        self._next_id = 100

    def _maybe_fail(self, payload: Mapping[str, Any]) -> None:
        marker = payload.get("address") or payload.get("notes")
        if marker in self.fail_on:
            raise RuntimeError(f"remote rejected {marker}")

    def create_lead(self, payload: Mapping[str, Any]) -> int:
        self.calls.append(("lead", dict(payload)))
        self._maybe_fail(payload)
        self._next_id += 1
        return self._next_id

    def create_follow_up(self, payload: Mapping[str, Any]) -> int:
        self.calls.append(("followup", dict(payload)))
        self._maybe_fail(payload)
        self._next_id += 1
        return self._next_id

    def list_leads(self) -> list[Lead]:
        return list(self.leads)

    def get_hail_zones(self, position: Location, radius_miles: float) -> list[HailDamageZone]:
        return list(self.zones)


@pytest.fixture
def remote() -> DummyRemote:
    return DummyRemote()
