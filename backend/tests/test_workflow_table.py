"""转换表：状态、角色、操作名的解析"""

import pytest

from dealerflow.core.exceptions import ForbiddenError, InvalidTransitionError
from dealerflow.core.permissions import ADMIN, DEALER_MANAGER, DEALER_STAFF, EVM_STAFF
from dealerflow.models.sales_order import ORDER_STATUSES
from dealerflow.services.delivery_tracker import DELIVERY_WORKFLOW
from dealerflow.services.order_workflow import ORDER_WORKFLOW
from dealerflow.services.payment_ledger import PAYMENT_WORKFLOW
from dealerflow.services.quote_workflow import QUOTE_WORKFLOW
from dealerflow.services.request_workflow import REQUEST_WORKFLOW
from dealerflow.services.workflow import UPDATE_STATUS


class TestOrderTransitionTable:

    @pytest.mark.parametrize("source,target,role", [
        ("new", "confirmed", DEALER_MANAGER),
        ("new", "cancelled", DEALER_MANAGER),
        ("new", "rejected", DEALER_MANAGER),
        ("confirmed", "allocated", EVM_STAFF),
        ("confirmed", "allocated", ADMIN),
        ("confirmed", "rejected", EVM_STAFF),
        ("allocated", "invoiced", DEALER_STAFF),
        ("allocated", "cancelled", DEALER_STAFF),
        ("invoiced", "delivered", DEALER_STAFF),
    ])
    def test_every_edge_resolves_for_its_role(self, source, target, role):
        transition = ORDER_WORKFLOW.resolve(source, target, role)
        assert (transition.source, transition.target) == (source, target)

    def test_statuses_match_model(self):
        assert ORDER_WORKFLOW.statuses == frozenset(ORDER_STATUSES)

    def test_dealer_staff_cannot_confirm(self):
        with pytest.raises(ForbiddenError) as exc_info:
            ORDER_WORKFLOW.resolve("new", "confirmed", DEALER_STAFF)
        assert exc_info.value.status_code == 403
        assert exc_info.value.detail["code"] == "forbidden"

    @pytest.mark.parametrize("source,target", [
        ("new", "allocated"),
        ("new", "delivered"),
        ("confirmed", "cancelled"),
        ("invoiced", "cancelled"),
        ("delivered", "new"),
        ("cancelled", "new"),
        ("rejected", "confirmed"),
    ])
    def test_edges_outside_table_are_invalid(self, source, target):
        with pytest.raises(InvalidTransitionError) as exc_info:
            ORDER_WORKFLOW.resolve(source, target, ADMIN)
        assert exc_info.value.current_status == source
        assert exc_info.value.detail["current_status"] == source
        assert exc_info.value.status_code == 409

    def test_terminal_states_have_no_actions(self):
        for status in ("delivered", "cancelled", "rejected"):
            for role in (DEALER_STAFF, DEALER_MANAGER, EVM_STAFF, ADMIN):
                assert ORDER_WORKFLOW.allowed_actions(status, role) == []


class TestActionNames:

    def test_named_actions_resolve_to_targets(self):
        assert ORDER_WORKFLOW.target_for("new", "approve") == "confirmed"
        assert ORDER_WORKFLOW.target_for("new", "reject") == "rejected"
        assert ORDER_WORKFLOW.target_for("confirmed", "allocate") == "allocated"
        assert ORDER_WORKFLOW.target_for("confirmed", "reject_by_evm") == "rejected"

    def test_update_status_uses_payload(self):
        assert ORDER_WORKFLOW.target_for("allocated", UPDATE_STATUS, "invoiced") == "invoiced"

    def test_update_status_without_target(self):
        with pytest.raises(InvalidTransitionError):
            ORDER_WORKFLOW.target_for("allocated", UPDATE_STATUS)

    def test_action_bound_to_its_source_status(self):
        # reject_by_evm 只适用于 confirmed
        with pytest.raises(InvalidTransitionError) as exc_info:
            ORDER_WORKFLOW.target_for("new", "reject_by_evm")
        assert exc_info.value.current_status == "new"

    def test_unknown_action(self):
        with pytest.raises(InvalidTransitionError):
            ORDER_WORKFLOW.target_for("new", "teleport")

    def test_allowed_actions_per_role(self):
        assert ORDER_WORKFLOW.allowed_actions("new", DEALER_MANAGER) == ["approve", "reject", UPDATE_STATUS]
        assert ORDER_WORKFLOW.allowed_actions("new", DEALER_STAFF) == []
        assert ORDER_WORKFLOW.allowed_actions("confirmed", EVM_STAFF) == ["allocate", "reject_by_evm"]
        assert ORDER_WORKFLOW.allowed_actions("allocated", DEALER_STAFF) == [UPDATE_STATUS]

    def test_actionable_statuses(self):
        assert ORDER_WORKFLOW.actionable_statuses(DEALER_MANAGER) == frozenset({"new"})
        assert ORDER_WORKFLOW.actionable_statuses(EVM_STAFF) == frozenset({"confirmed"})
        assert ORDER_WORKFLOW.actionable_statuses(DEALER_STAFF) == frozenset({"allocated", "invoiced"})


class TestSiblingTables:

    def test_delivery_is_dealer_staff_only(self):
        DELIVERY_WORKFLOW.resolve("pending", "in_progress", DEALER_STAFF)
        DELIVERY_WORKFLOW.resolve("in_progress", "delivered", DEALER_STAFF)
        with pytest.raises(ForbiddenError):
            DELIVERY_WORKFLOW.resolve("pending", "in_progress", DEALER_MANAGER)
        with pytest.raises(InvalidTransitionError):
            DELIVERY_WORKFLOW.resolve("pending", "delivered", DEALER_STAFF)

    def test_payment_flip_is_terminal(self):
        PAYMENT_WORKFLOW.resolve("pending", "confirmed", DEALER_MANAGER)
        PAYMENT_WORKFLOW.resolve("pending", "failed", DEALER_MANAGER)
        with pytest.raises(InvalidTransitionError):
            PAYMENT_WORKFLOW.resolve("confirmed", "failed", DEALER_MANAGER)
        with pytest.raises(ForbiddenError):
            PAYMENT_WORKFLOW.resolve("pending", "confirmed", DEALER_STAFF)

    def test_vehicle_request_actions(self):
        assert REQUEST_WORKFLOW.allowed_actions("pending", EVM_STAFF) == ["approve", "reject"]
        assert REQUEST_WORKFLOW.allowed_actions("pending", DEALER_MANAGER) == ["cancel"]
        assert REQUEST_WORKFLOW.allowed_actions("approved", DEALER_MANAGER) == ["fulfill"]
        assert REQUEST_WORKFLOW.allowed_actions("rejected", ADMIN) == []

    def test_quote_actions(self):
        assert QUOTE_WORKFLOW.target_for("draft", "approve") == "accepted"
        assert QUOTE_WORKFLOW.target_for("sent", "approve") == "accepted"
        assert QUOTE_WORKFLOW.allowed_actions("accepted", DEALER_STAFF) == ["convert"]
        with pytest.raises(InvalidTransitionError):
            QUOTE_WORKFLOW.target_for("converted", "convert")
