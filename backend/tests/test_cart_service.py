# Overview: Pytest coverage for the sale cart and the pending-product queue.

import pytest

from stockroom.services.cart_service import CartCommitError
from stockroom.validation import (
    DuplicateName,
    InsufficientStock,
    ProductNotFound,
    RecordNotFound,
    ValidationError,
)

from conftest import stored_counts, stored_stock


class TestSaleCart:
    def test_repeat_product_merges_into_one_line(self, workspace, rice):
        """Rice 10 -> add 5, add 3 -> one line of 8 -> commit -> stock 2."""
        ledger = workspace.ledger
        ledger.apply_sale(rice.id, 90, "Setup")
        assert ledger.mirror.get_product(rice.id).stock == 10

        cart = workspace.cart
        cart.add_line(rice.id, 5)
        line = cart.add_line(rice.id, 3)

        assert line.quantity == 8
        assert len(cart.lines) == 1

        sales = cart.commit("Alice")

        assert [s.quantity for s in sales] == [8]
        assert stored_stock(rice.id) == 2
        assert cart.is_empty()

    def test_merged_total_is_checked_against_stock(self, workspace, rice):
        cart = workspace.cart
        cart.add_line(rice.id, 60)

        with pytest.raises(InsufficientStock) as exc:
            cart.add_line(rice.id, 41)

        assert exc.value.details["requested"] == 101
        assert exc.value.details["in_cart"] == 60
        assert cart.lines[0].quantity == 60

    def test_add_line_errors(self, workspace, rice):
        with pytest.raises(ValidationError):
            workspace.cart.add_line(rice.id, 0)
        with pytest.raises(ProductNotFound):
            workspace.cart.add_line(999999, 1)
        assert workspace.cart.is_empty()

    def test_remove_line(self, workspace, rice):
        workspace.cart.add_line(rice.id, 5)
        removed = workspace.cart.remove_line(rice.id)

        assert removed.quantity == 5
        assert workspace.cart.is_empty()
        with pytest.raises(RecordNotFound):
            workspace.cart.remove_line(rice.id)

    def test_commit_of_empty_cart_writes_nothing(self, workspace, rice):
        with pytest.raises(ValidationError):
            workspace.cart.commit("Alice")
        assert stored_counts() == (0, 0)

    def test_commit_requires_customer(self, workspace, rice):
        workspace.cart.add_line(rice.id, 1)
        with pytest.raises(ValidationError):
            workspace.cart.commit("  ")
        assert stored_counts() == (0, 0)
        assert len(workspace.cart.lines) == 1

    def test_partial_failure_drops_only_applied_lines(self, open_workspace):
        a = open_workspace()
        b = open_workspace()
        rice = a.ledger.create_product("Rice", 100, "kg", 50)
        beans = a.ledger.create_product("Beans", 10, "kg", 20)

        a.cart.add_line(rice.id, 5)
        a.cart.add_line(beans.id, 10)

        # another cashier sells most of the beans before A commits
        b.ledger.apply_sale(beans.id, 8, "Bob")

        with pytest.raises(CartCommitError) as exc:
            a.cart.commit("Alice")

        err = exc.value
        assert err.status_code == 409
        assert err.failed_line.product_id == beans.id
        assert isinstance(err.error, InsufficientStock)
        assert [s.product_id for s in err.succeeded] == [rice.id]

        assert stored_stock(rice.id) == 95
        assert stored_stock(beans.id) == 2
        assert stored_counts() == (2, 0)
        assert [line.product_id for line in a.cart.lines] == [beans.id]

    def test_retry_after_partial_failure_does_not_resell_applied_lines(self, open_workspace):
        a = open_workspace()
        b = open_workspace()
        rice = a.ledger.create_product("Rice", 100, "kg", 50)
        oil = a.ledger.create_product("Oil", 10, "litre", 180)

        a.cart.add_line(rice.id, 30)
        a.cart.add_line(oil.id, 5)
        b.ledger.apply_sale(oil.id, 8, "Bob")

        with pytest.raises(CartCommitError):
            a.cart.commit("Alice")
        assert stored_stock(rice.id) == 70

        a.cart.remove_line(oil.id)
        a.cart.add_line(oil.id, 2)
        sales = a.cart.commit("Alice")

        assert [s.product_id for s in sales] == [oil.id]
        assert stored_stock(rice.id) == 70
        assert stored_stock(oil.id) == 0
        assert a.cart.is_empty()

    def test_commit_error_payload(self, open_workspace):
        a = open_workspace()
        rice = a.ledger.create_product("Rice", 3, "kg", 50)
        a.cart.add_line(rice.id, 3)
        a.ledger.apply_sale(rice.id, 1, "Bob")

        with pytest.raises(CartCommitError) as exc:
            a.cart.commit("Alice")

        payload = exc.value.to_dict()
        assert payload["details"]["failed_line"]["quantity"] == 3
        assert payload["details"]["succeeded"] == []
        assert payload["details"]["failure"]["details"]["available"] == 2


class TestPendingProducts:
    def test_queue_rejects_names_already_in_catalogue(self, workspace, rice):
        with pytest.raises(DuplicateName):
            workspace.pending.queue("RICE", 5, "kg")
        assert workspace.pending.entries == []

    def test_queue_rejects_names_already_queued(self, workspace):
        workspace.pending.queue("Beans", 5, "kg")
        with pytest.raises(DuplicateName):
            workspace.pending.queue(" beans", 7, "kg")
        assert [e.name for e in workspace.pending.entries] == ["Beans"]

    def test_queue_validates_fields(self, workspace):
        with pytest.raises(ValidationError):
            workspace.pending.queue("Beans", -1, "kg")

    def test_discard(self, workspace):
        workspace.pending.queue("Beans", 5, "kg")
        workspace.pending.discard("BEANS")
        assert workspace.pending.entries == []
        with pytest.raises(RecordNotFound):
            workspace.pending.discard("Beans")

    def test_commit_creates_the_batch(self, workspace):
        workspace.pending.queue("Beans", 5, "kg", "12.5")
        workspace.pending.queue("Lentils", 8, "kg")

        created = workspace.pending.commit()

        assert [p.name for p in created] == ["Beans", "Lentils"]
        assert {p.name for p in workspace.mirror.products} == {"Beans", "Lentils"}
        assert workspace.pending.entries == []

    def test_commit_of_empty_queue(self, workspace):
        with pytest.raises(ValidationError):
            workspace.pending.commit()

    def test_failed_commit_keeps_the_queue(self, open_workspace):
        a = open_workspace()
        b = open_workspace()
        a.pending.queue("Beans", 5, "kg")
        b.ledger.create_product("Beans", 1, "kg")

        with pytest.raises(DuplicateName):
            a.pending.commit()
        assert [e.name for e in a.pending.entries] == ["Beans"]
