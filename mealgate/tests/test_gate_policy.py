"""
Gate access policy tests
"""

import pytest

from ..models.venue import Gate, GateType, Restaurant
from ..services.gate_policy import GateAccessPolicy, GateReason

R1 = Restaurant(id="r1", name="Restaurant 1", name_ar="المطعم 1", gate_id="g-rest")
R2 = Restaurant(id="r2", name="Restaurant 2")


def gate(gate_type, restaurant_ids=()):
    return Gate(id="g-rest", name="Gate", gate_type=gate_type, restaurant_ids=list(restaurant_ids))


@pytest.fixture
def policy():
    return GateAccessPolicy()


class TestGateAccessPolicy:

    def test_main_gate_admits_everyone(self, policy):
        decision = policy.authorize(gate(GateType.MAIN.value), None)
        assert decision.allowed
        assert decision.reason == GateReason.MAIN_GATE

    def test_restaurant_gate_admits_linked_guest(self, policy):
        decision = policy.authorize(gate(GateType.RESTAURANT.value, ["r1"]), R1)
        assert decision.allowed
        assert decision.reason == GateReason.RESTAURANT_GATE
        assert "Restaurant 1" in decision.message
        assert "المطعم 1" in decision.message_ar

    def test_restaurant_gate_rejects_other_restaurant(self, policy):
        decision = policy.authorize(gate(GateType.RESTAURANT.value, ["r1"]), R2)
        assert not decision.allowed
        assert decision.reason == GateReason.RESTAURANT_NOT_LINKED
        assert "Restaurant 2" in decision.message

    def test_restaurant_gate_rejects_unassigned_guest(self, policy):
        decision = policy.authorize(gate(GateType.RESTAURANT.value, ["r1"]), None)
        assert not decision.allowed
        assert decision.reason == GateReason.NO_RESTAURANT

    def test_requested_restaurant_must_match(self, policy):
        decision = policy.authorize(gate(GateType.RESTAURANT.value, ["r1", "r2"]), R1, requested_restaurant_id="r2")
        assert not decision.allowed
        assert decision.reason == GateReason.RESTAURANT_MISMATCH

        decision = policy.authorize(gate(GateType.RESTAURANT.value, ["r1", "r2"]), R1, requested_restaurant_id="r1")
        assert decision.allowed

    def test_unknown_gate_type_denied(self, policy):
        decision = policy.authorize(gate("SERVICE"), R1)
        assert not decision.allowed
        assert decision.reason == GateReason.UNSUPPORTED_GATE_TYPE
