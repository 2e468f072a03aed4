from __future__ import annotations

import pytest

from planning_copilot.runtime.agents.definitions import AGENT_DEFINITIONS
from planning_copilot.runtime.agents.registry import AgentRegistry, require_lane_permission
from planning_copilot.runtime.agents.routing import AgentRoute, AgentRoutingTable
from planning_copilot.runtime.errors import AgentNotAllowedInLane, AgentNotFound, NotFoundError


def test_registry_lookup_by_name_and_lane() -> None:
    registry = AgentRegistry()

    assert registry.get("architect") is not None
    assert registry.get("nobody") is None
    assert len(registry.all()) == len(AGENT_DEFINITIONS)

    lane_seven = {d.name for d in registry.by_lane(7)}
    assert {"qa", "troubleshooter", "code_standards", "ceo_copilot"} <= lane_seven
    assert "architect" not in lane_seven
    assert registry.by_lane(42) == []


def test_every_definition_has_a_prompt() -> None:
    for definition in AGENT_DEFINITIONS:
        assert definition.system_prompt.strip(), definition.name


def test_lane_permission_checks() -> None:
    registry = AgentRegistry()

    assert registry.is_allowed_in_lane("devops", 8)
    assert not registry.is_allowed_in_lane("devops", 6)
    assert not registry.is_allowed_in_lane("nobody", 0)
    assert require_lane_permission(registry, "qa", 7).name == "qa"

    with pytest.raises(AgentNotAllowedInLane) as excinfo:
        require_lane_permission(registry, "qa", 3)
    assert excinfo.value.lane_number == 3
    assert "QA Agent" in str(excinfo.value)

    with pytest.raises(AgentNotFound) as missing:
        require_lane_permission(registry, "nobody", 0)
    assert isinstance(missing.value, NotFoundError)


def test_routing_falls_back_to_baseline() -> None:
    routing = AgentRoutingTable()

    assert routing.route_for("frontend-agent") == AgentRoute(lanes=(5, 6), priority="High", default_lane=5)
    assert routing.route_for("made-up-agent").default_lane == 0
    assert routing.route_for(None).priority == "Critical"
    assert routing.route_for("").priority == "Critical"


def test_alias_resolution_normalizes_text() -> None:
    routing = AgentRoutingTable()

    assert routing.resolve_alias("UI Agent") == "frontend-agent"
    assert routing.resolve_alias("  db   agent ") == "database-agent"
    assert routing.resolve_alias("qa-agent") == "qa-agent"
    assert routing.resolve_alias("WooCommerce") == "wordpress-agent"
    assert routing.resolve_alias("janitor") is None


def test_routing_lists_every_routed_agent() -> None:
    routing = AgentRoutingTable()

    assert "ceo-copilot" in routing.agents()
    assert routing.route_for("devops-agent").lanes == (8,)
    assert 9 in routing.route_for("wordpress-agent").lanes


def test_routing_table_requires_baseline_route() -> None:
    with pytest.raises(ValueError):
        AgentRoutingTable(routes={"solo": AgentRoute(lanes=(1,), priority="Low", default_lane=1)})

    table = AgentRoutingTable(
        routes={"solo": AgentRoute(lanes=(1,), priority="Low", default_lane=1)},
        aliases={},
        baseline="solo",
    )
    assert table.route_for("anything").default_lane == 1
