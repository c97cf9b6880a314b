from datetime import datetime, timedelta

import pytest

from cancellation_engine.core.errors import InvalidTransitionError, NotFoundError, ValidationError
from cancellation_engine.core.models import CancellationRequestCreate
from cancellation_engine.engine import portal, review_queue
from cancellation_engine.engine.dispatcher import score_and_decide


def _submit(order_id, **fields):
    return portal.create_cancellation_request(CancellationRequestCreate(order_id=order_id, **fields))


class TestCreateRequest:

    def test_request_copies_order_ownership(self, make_customer, make_order):
        customer_id = make_customer()
        order_id = make_order(customer_id=customer_id)

        request = _submit(order_id, reason="Wrong size", reason_category="ordered_by_mistake")

        assert request.status == "pending"
        assert request.customer_id == customer_id
        assert request.organization_id == "test-org"
        assert request.reason_category == "ordered_by_mistake"
        assert request.initiated_by == "customer"
        assert request.risk_score is None

    def test_unknown_order(self):
        with pytest.raises(NotFoundError):
            _submit("missing")

    def test_cancelled_order_is_rejected(self, make_order):
        with pytest.raises(InvalidTransitionError):
            _submit(make_order(status="cancelled"))

    @pytest.mark.parametrize("status", ["closed", "archived"])
    def test_settled_order_is_rejected(self, make_order, status):
        with pytest.raises(InvalidTransitionError, match="already been completed"):
            _submit(make_order(status=status, fulfillment_status="fulfilled"))

    def test_completed_request_blocks_resubmission(self, make_order, make_request):
        order_id = make_order()
        make_request(order_id, created_at=datetime.utcnow(), status="completed")

        with pytest.raises(InvalidTransitionError, match="already been cancelled"):
            _submit(order_id)

    def test_one_open_request_per_order(self, make_order):
        order_id = make_order()
        _submit(order_id)
        with pytest.raises(InvalidTransitionError):
            _submit(order_id)

    def test_new_request_allowed_after_denial(self, make_order):
        order_id = make_order()
        first = _submit(order_id)
        portal.withdraw_cancellation_request(first.id)

        assert _submit(order_id).status == "pending"


class TestStatus:

    def test_status_of_queued_request(self, make_order):
        request = _submit(make_order(placed_at=datetime.utcnow() - timedelta(hours=2)))
        score_and_decide(request.id)

        status = portal.get_cancellation_status(request.id)

        assert status.status == "pending"
        assert set(status.timeline) == {"requested"}
        assert status.admin_response is None

    def test_status_after_review(self, make_order):
        request = _submit(make_order(placed_at=datetime.utcnow() - timedelta(hours=2)))
        item_id = score_and_decide(request.id).queue_item_id
        review_queue.deny_queue_item(item_id, "reviewer-1", "Already shipped")

        status = portal.get_cancellation_status(request.id)

        assert status.status == "denied"
        assert status.admin_response == "Already shipped"
        assert {"requested", "denied", "reviewed"} <= set(status.timeline)

    def test_status_shows_info_request(self, make_order):
        request = _submit(make_order(placed_at=datetime.utcnow() - timedelta(hours=2)))
        item_id = score_and_decide(request.id).queue_item_id
        review_queue.request_info_on_queue_item(item_id, "reviewer-1", "Please confirm the address")

        status = portal.get_cancellation_status(request.id)

        assert status.status == "pending"
        assert status.info_request_message == "Please confirm the address"


class TestWithdraw:

    def test_withdraw_pending_request(self, make_order, review_items_for):
        request = _submit(make_order(placed_at=datetime.utcnow() - timedelta(hours=2)))
        score_and_decide(request.id)

        withdrawn = portal.withdraw_cancellation_request(request.id)

        assert withdrawn.status == "denied"
        assert withdrawn.decision_reason == portal.WITHDRAWN_NOTE
        assert review_items_for(request.id) == []

    def test_decided_request_cannot_be_withdrawn(self, make_order, make_rule):
        make_rule("Approve everything", {}, action="auto_approve")
        request = _submit(make_order())
        score_and_decide(request.id)

        with pytest.raises(InvalidTransitionError):
            portal.withdraw_cancellation_request(request.id)


class TestLookupOrder:

    def test_lookup_ignores_case_and_whitespace(self, make_order):
        order_id = make_order(order_number="#A1001", total_amount=2400)

        found = portal.lookup_order("  #a1001 ", " Shopper@Example.COM ")

        assert found.id == order_id
        assert found.order_number == "#A1001"
        assert found.customer_email == "shopper@example.com"
        assert found.customer_name == "Test Shopper"
        assert found.total_amount == 2400
        assert found.latest_request is None
        assert found.can_cancel is True
        assert found.ineligible_reason is None

    def test_wrong_email_reads_as_not_found(self, make_order):
        make_order()
        with pytest.raises(NotFoundError):
            portal.lookup_order("#1001", "someone-else@example.com")

    @pytest.mark.parametrize("order_number, email", [
        ("", "shopper@example.com"),
        ("#1001", "   "),
        (None, None),
    ])
    def test_both_fields_are_required(self, order_number, email):
        with pytest.raises(ValidationError, match="required"):
            portal.lookup_order(order_number, email)

    @pytest.mark.parametrize("email", ["shopper", "shopper@example", "sho pper@example.com"])
    def test_malformed_email(self, email):
        with pytest.raises(ValidationError, match="Invalid email"):
            portal.lookup_order("#1001", email)

    def test_request_in_progress_is_reported(self, make_order):
        order_id = make_order()
        request = _submit(order_id, reason="Too slow")

        found = portal.lookup_order("#1001", "shopper@example.com")

        assert found.latest_request.id == request.id
        assert found.latest_request.status == "pending"
        assert found.can_cancel is False
        assert found.ineligible_reason == "A cancellation request is already in progress"

    def test_withdrawn_request_leaves_order_cancellable(self, make_order):
        request = _submit(make_order())
        portal.withdraw_cancellation_request(request.id)

        found = portal.lookup_order("#1001", "shopper@example.com")

        assert found.latest_request.status == "denied"
        assert found.can_cancel is True

    def test_closed_order_cannot_be_cancelled(self, make_order):
        make_order(status="closed", fulfillment_status="fulfilled")

        found = portal.lookup_order("#1001", "shopper@example.com")

        assert found.can_cancel is False
        assert found.ineligible_reason == "Order has already been completed and cannot be cancelled"

    def test_lookup_scoped_to_organization(self, make_customer, make_order):
        customer_id = make_customer()
        ours = make_order(customer_id=customer_id)
        make_order(customer_id=customer_id, organization_id="other-org")

        assert portal.lookup_order("#1001", "shopper@example.com", organization_id="test-org").id == ours
