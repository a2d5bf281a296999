"""Tests for the Category Manager."""

import pytest

from ledger.errors import (
    EditConflictError,
    NotFoundError,
    ProtectedEntityError,
    ValidationFailedError,
)
from ledger.models import INITIAL_CATEGORY_NAME, CategoryPatch
from ledger.services import CategoryManager, ensure_initial_category, initial_category_id


class TestCreateCategory:
    """Tests for category creation."""

    def test_create(self, categories, alice, audit_logger):
        category = categories.create(alice, "Groceries", "#00ff00", "cart")
        assert category.id > 0
        assert category.user_id == alice
        assert category.version == 1
        assert not category.is_initial
        audit_logger.log_category_created.assert_called_once_with(category.id, alice, "Groceries")

    def test_reports_every_invalid_field(self, categories, alice):
        with pytest.raises(ValidationFailedError) as exc_info:
            categories.create(alice, "x" * 21, "green", "")
        assert set(exc_info.value.errors) == {"name", "color", "icon"}
        assert exc_info.value.errors["name"] == "Must not be more than 20 bytes long"

    def test_unknown_user_is_not_found(self, categories):
        with pytest.raises(NotFoundError):
            categories.create(999, "Groceries", "#0f0", "cart")


class TestReadCategories:
    """Tests for listing and lookup."""

    def test_get_all_in_insertion_order(self, categories, alice, bob):
        first = categories.create(alice, "Rent", "#000", "house")
        second = categories.create(alice, "Food", "#fff", "fork")
        categories.create(bob, "Bob's", "#abc", "b")

        assert [c.id for c in categories.get_all(alice)] == [first.id, second.id]

    def test_get_all_includes_system_user_categories(self, db, alice, bob):
        shared = CategoryManager(db, system_user_id=bob)
        bobs = shared.create(bob, "Shared", "#abc", "s")
        own = shared.create(alice, "Own", "#def", "o")

        assert [c.id for c in shared.get_all(alice)] == [bobs.id, own.id]

    def test_get_by_id_twice_is_identical(self, categories, groceries, alice):
        assert categories.get_by_id(alice, groceries.id) == categories.get_by_id(alice, groceries.id)

    @pytest.mark.parametrize("category_id", [0, -1, 999])
    def test_get_by_id_not_found(self, categories, alice, groceries, category_id):
        with pytest.raises(NotFoundError):
            categories.get_by_id(alice, category_id)

    def test_foreign_category_not_found(self, categories, groceries, bob):
        with pytest.raises(NotFoundError):
            categories.get_by_id(bob, groceries.id)


class TestInitialCategory:
    """Tests for the protected per-user initial category."""

    def test_created_lazily_once(self, db, alice):
        with db.transaction() as q:
            assert initial_category_id(q, alice) is None
            first = ensure_initial_category(q, alice)
            second = ensure_initial_category(q, alice)

        assert first.id == second.id
        assert first.is_initial
        assert first.name == INITIAL_CATEGORY_NAME

    def test_first_account_creates_it(self, db, accounts, alice):
        accounts.create(alice, "cash", "Wallet")
        accounts.create(alice, "debit", "Bank")

        with db.transaction() as q:
            initial = [c for c in q.list_categories([alice]) if c.is_initial]
        assert len(initial) == 1

    def test_delete_rejected(self, db, categories, wallet, alice, audit_logger):
        with db.transaction() as q:
            initial_id = initial_category_id(q, alice)

        with pytest.raises(ProtectedEntityError):
            categories.delete_by_id(alice, initial_id)
        assert audit_logger.log_protected_rejected.called
        assert categories.get_by_id(alice, initial_id).is_initial

    def test_update_rejected(self, db, categories, wallet, alice):
        with db.transaction() as q:
            initial_id = initial_category_id(q, alice)

        with pytest.raises(ProtectedEntityError):
            categories.update_by_id(alice, initial_id, CategoryPatch(name="Renamed"))
        assert categories.get_by_id(alice, initial_id).name == INITIAL_CATEGORY_NAME


class TestDeleteCategory:
    """Tests for category deletion."""

    def test_delete(self, categories, groceries, alice, audit_logger):
        categories.delete_by_id(alice, groceries.id)
        with pytest.raises(NotFoundError):
            categories.get_by_id(alice, groceries.id)
        audit_logger.log_category_deleted.assert_called_once_with(groceries.id, alice)

    def test_delete_missing(self, categories, alice):
        with pytest.raises(NotFoundError):
            categories.delete_by_id(alice, 999)

    def test_delete_foreign(self, categories, groceries, bob):
        with pytest.raises(NotFoundError):
            categories.delete_by_id(bob, groceries.id)

    def test_delete_in_use_rejected(self, categories, groceries, wallet, alice, make_transaction):
        make_transaction(alice, wallet.id, groceries.id, -500)

        with pytest.raises(ProtectedEntityError):
            categories.delete_by_id(alice, groceries.id)
        assert categories.get_by_id(alice, groceries.id)


class TestUpdateCategory:
    """Tests for category updates."""

    def test_partial_update(self, categories, groceries, alice):
        updated = categories.update_by_id(alice, groceries.id, CategoryPatch(color="#123456"))
        assert updated.color == "#123456"
        assert updated.name == "Groceries"
        assert updated.version == groceries.version + 1

    def test_invalid_patch(self, categories, groceries, alice):
        with pytest.raises(ValidationFailedError) as exc_info:
            categories.update_by_id(alice, groceries.id, CategoryPatch(name=None, color="blue"))
        assert set(exc_info.value.errors) == {"name", "color"}
        assert categories.get_by_id(alice, groceries.id) == groceries

    def test_stale_copy_conflicts(self, categories, groceries, alice, audit_logger):
        first = categories.get_by_id(alice, groceries.id)
        second = categories.get_by_id(alice, groceries.id)

        categories.update_by_id(alice, first.id, CategoryPatch(name="Food"), first.version)
        with pytest.raises(EditConflictError):
            categories.update_by_id(alice, second.id, CategoryPatch(name="Meals"), second.version)

        assert categories.get_by_id(alice, groceries.id).name == "Food"
        assert audit_logger.log_edit_conflict.called

    def test_foreign_update_not_found(self, categories, groceries, bob):
        with pytest.raises(NotFoundError):
            categories.update_by_id(bob, groceries.id, CategoryPatch(name="Mine"))
