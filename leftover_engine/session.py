"""
Budget Session

The one object the routes and UI talk to. A session owns the loaded
template collection, a cache of the months visited so far and the undo
stack, and hands persistence to a storage collaborator.

MUTATION FLOW:
1. Validate the input (nothing is touched if this fails)
2. Apply the change to the in-memory collections
3. Hand the changed collection to storage
4. Record an undo entry and log the change

If storage raises during step 3 the in-memory collection is put back the
way it was before step 2 and the StorageError propagates. With the
debounced AutoSaver in front of disk, step 3 only queues the write and
failures surface from flush()/close() instead. Step 4 runs after the
change is committed: a failed undo-file write is logged, not raised.

There are no module-level singletons: tests and callers build as many
sessions as they like over whatever storage they like.
"""

import functools
from contextlib import contextmanager
from typing import Any, Iterator, Optional
from uuid import UUID

from leftover_engine.audit import EngineLogger, configure_logging
from leftover_engine.calculations import BillingPeriodCalculator
from leftover_engine.calculations import compute_leftover as calculate_leftover
from leftover_engine.config import EngineSettings, Settings, get_settings
from leftover_engine.errors import (
    MonthAlreadyExistsError,
    NotFoundError,
    ReadOnlyMonthError,
    StorageError,
    UndoDepthMismatchError,
    ValidationError,
)
from leftover_engine.models import (
    BillInstance,
    BillTemplate,
    Category,
    CategoryType,
    FreeFlowingExpense,
    IncomeInstance,
    IncomeTemplate,
    LeftoverBreakdown,
    MonthlyData,
    PaymentSource,
    RevertedEntity,
    TemplateCollection,
    UndoEntry,
    VariableExpense,
    create_undo_entry,
    format_cents,
    parse_month,
)
from leftover_engine.models.budget import utc_now
from leftover_engine.services import overrides
from leftover_engine.services.months import MonthGenerator
from leftover_engine.services.storage import (
    AutoSaver,
    BudgetStorageInterface,
    JsonFileStorage,
)
from leftover_engine.services.undo import UndoStack, apply_revert, revert_scope
from leftover_engine.validation import InputValidator


# Template collection attribute -> (model, category type, entity label)
_TEMPLATE_KINDS = {
    "bills": (BillTemplate, CategoryType.BILL, "bill"),
    "incomes": (IncomeTemplate, CategoryType.INCOME, "income"),
    "payment_sources": (PaymentSource, None, "payment_source"),
}

# Month collection attribute -> (template collection, instance label, template label)
_INSTANCE_KINDS = {
    "bill_instances": ("bills", "bill_instance", "bill"),
    "income_instances": ("incomes", "income_instance", "income"),
}

# Month collection attribute -> (model, entity label)
_EXPENSE_KINDS = {
    "variable_expenses": (VariableExpense, "variable_expense"),
    "free_flowing_expenses": (FreeFlowingExpense, "free_flowing_expense"),
}


def _logs_rejections(method):
    """Log ValidationErrors raised by a session operation before re-raising."""

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        try:
            return method(self, *args, **kwargs)
        except ValidationError as e:
            self._logger.log_validation_failed(e.field, e.message)
            raise

    return wrapper


def _same_state(before, after) -> bool:
    ignore = {"updated_at"}
    return before.model_dump(exclude=ignore) == after.model_dump(exclude=ignore)


class BudgetSession:
    """
    Explicit context for one user's budget.

    Attributes:
        templates: The live template collection (bills, incomes, payment
            sources, categories). Treat as read-only outside the session.
    """

    def __init__(
        self,
        storage: BudgetStorageInterface,
        settings: Optional[EngineSettings] = None,
        logger: Optional[EngineLogger] = None,
    ):
        self._storage = storage
        self._settings = settings or EngineSettings()
        self._logger = logger or EngineLogger()
        self._generator = MonthGenerator(
            BillingPeriodCalculator(self._settings.biweekly_epoch)
        )
        self._months: dict[str, MonthlyData] = {}

        self.templates: TemplateCollection = storage.load_templates()

        restored = storage.load_undo() if self._settings.persist_undo else ()
        self._undo = UndoStack(restored)

    @classmethod
    def open(cls, settings: Optional[Settings] = None) -> "BudgetSession":
        """
        Build a session over the JSON data directory named in settings,
        with debounced writes and logging configured.
        """
        settings = settings or get_settings()
        configure_logging(settings.app.log_level)
        logger = EngineLogger()
        storage = AutoSaver(
            JsonFileStorage(settings.storage),
            debounce_ms=settings.storage.debounce_ms,
            logger=logger,
        )
        return cls(storage, settings=settings.engine, logger=logger)

    def __enter__(self) -> "BudgetSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def settings(self) -> EngineSettings:
        return self._settings

    @property
    def storage(self) -> BudgetStorageInterface:
        return self._storage

    def _validator(self) -> InputValidator:
        return InputValidator(self.templates)

    # -------------------------------------------------------------------------
    # Months
    # -------------------------------------------------------------------------

    def _month(self, month: str) -> Optional[MonthlyData]:
        parse_month(month)
        data = self._months.get(month)
        if data is None:
            data = self._storage.load_month(month)
            if data is not None:
                self._months[month] = data
        return data

    def _require_month(self, month: str) -> MonthlyData:
        data = self._month(month)
        if data is None:
            raise NotFoundError("month", month)
        return data

    def month_for_edit(self, month: str) -> MonthlyData:
        """
        The live MonthlyData for a month that may be changed.

        Raises:
            NotFoundError: The month has not been generated
            ReadOnlyMonthError: The month is locked
        """
        data = self._require_month(month)
        if data.is_read_only:
            raise ReadOnlyMonthError(month)
        return data

    def get_month(self, month: str) -> Optional[MonthlyData]:
        """A copy of the month's data, or None if it was never generated."""
        data = self._month(month)
        return data.model_copy(deep=True) if data is not None else None

    def generate_month(self, month: str) -> MonthlyData:
        """
        Create a month's instances from the current active templates.

        Raises:
            InvalidMonthError: month is not YYYY-MM
            MonthAlreadyExistsError: The month was generated before
        """
        parse_month(month)
        if month in self._months or self._storage.month_exists(month):
            raise MonthAlreadyExistsError(month)

        data = self._generator.generate(month, self.templates.bills, self.templates.incomes)
        self._months[month] = data
        try:
            self._storage.save_month(month, data)
        except Exception:
            del self._months[month]
            raise

        self._logger.log_month_generated(
            month, len(data.bill_instances), len(data.income_instances)
        )
        return data.model_copy(deep=True)

    def ensure_month(self, month: str) -> MonthlyData:
        """The month's data, generating it on first visit."""
        data = self._month(month)
        if data is None:
            return self.generate_month(month)
        return data.model_copy(deep=True)

    def list_months(self) -> list[str]:
        return sorted(set(self._storage.list_months()) | set(self._months))

    def _all_months(self) -> Iterator[MonthlyData]:
        for month in self.list_months():
            data = self._month(month)
            if data is not None:
                yield data

    def delete_month(self, month: str) -> None:
        """
        Remove a month and any undo entries that point into it.

        Raises:
            NotFoundError: The month does not exist
            ReadOnlyMonthError: The month is locked
        """
        self.month_for_edit(month)
        self._storage.delete_month(month)
        del self._months[month]

        if self._undo.discard_month(month):
            self._save_undo()
        self._logger.log_month_deleted(month)

    def toggle_read_only(self, month: str) -> bool:
        """Lock or unlock a month. Returns the new is_read_only value."""
        data = self._require_month(month)
        with self._saving_month(month, data):
            data.is_read_only = not data.is_read_only
        self._logger.log_month_lock_toggled(month, data.is_read_only)
        return data.is_read_only

    @contextmanager
    def _saving_month(self, month: str, data: MonthlyData) -> Iterator[MonthlyData]:
        snapshot = data.model_copy(deep=True)
        try:
            yield data
            data.touch()
            self._storage.save_month(month, data)
        except Exception:
            self._months[month] = snapshot
            raise

    @contextmanager
    def _editing_month(self, month: str) -> Iterator[MonthlyData]:
        with self._saving_month(month, self.month_for_edit(month)) as data:
            yield data

    # -------------------------------------------------------------------------
    # Instances
    # -------------------------------------------------------------------------

    def _instance(self, month: str, collection: str, instance_id: UUID):
        """(live month, index, instance) for an instance that may be edited."""
        data = self.month_for_edit(month)
        index = data.find(collection, instance_id)
        if index is None:
            raise NotFoundError(_INSTANCE_KINDS[collection][1], instance_id)
        return data, index, getattr(data, collection)[index]

    def _template_amount(self, collection: str, instance) -> Optional[int]:
        template = self.templates.get(_INSTANCE_KINDS[collection][0], instance.template_id)
        return template.amount if template is not None else None

    def _replace_instance(
        self,
        month: str,
        collection: str,
        data: MonthlyData,
        index: int,
        after,
        entry: UndoEntry,
        changes: dict,
    ):
        with self._saving_month(month, data):
            getattr(data, collection)[index] = after
        self._logger.log_instance_updated(_INSTANCE_KINDS[collection][1], after.id, month, changes)
        self.push_undo(entry)
        return after.model_copy(deep=True)

    def _update_instance(
        self,
        month: str,
        collection: str,
        instance_id: UUID,
        amount: Optional[int],
        paid: Optional[bool],
    ):
        if amount is None and paid is None:
            raise ValidationError("Nothing to update: pass amount and/or paid", field="amount")
        if amount is not None:
            InputValidator.check_amount(amount)
        if paid is not None:
            InputValidator.check_flag(paid, "paid")

        data, index, before = self._instance(month, collection, instance_id)
        after = before
        if amount is not None:
            after, _ = overrides.set_instance_amount(
                after, amount, self._template_amount(collection, after)
            )
        if paid is not None and paid != after.paid:
            after, _ = overrides.toggle_paid(after)
        if _same_state(before, after):
            return before.model_copy(deep=True)

        # One call is one undo step, however many fields it touched
        entry = create_undo_entry(before, after)
        changes = {"amount": after.amount, "paid": after.paid, "is_default": after.is_default}
        return self._replace_instance(month, collection, data, index, after, entry, changes)

    @_logs_rejections
    def update_bill_instance(
        self,
        month: str,
        instance_id: UUID,
        amount: Optional[int] = None,
        paid: Optional[bool] = None,
    ) -> BillInstance:
        """
        Override a bill instance's amount and/or paid flag.

        Only this month's instance changes; the template and other months
        are untouched. is_default tracks whether the amount equals the
        template's current default.
        """
        return self._update_instance(month, "bill_instances", instance_id, amount, paid)

    @_logs_rejections
    def update_income_instance(
        self,
        month: str,
        instance_id: UUID,
        amount: Optional[int] = None,
        paid: Optional[bool] = None,
    ) -> IncomeInstance:
        """Override an income instance's amount and/or received (paid) flag."""
        return self._update_instance(month, "income_instances", instance_id, amount, paid)

    def _reset_instance(self, month: str, collection: str, instance_id: UUID):
        data, index, before = self._instance(month, collection, instance_id)
        template_amount = self._template_amount(collection, before)
        if template_amount is None:
            raise NotFoundError(_INSTANCE_KINDS[collection][2], before.template_id)
        after, entry = overrides.reset_to_default(before, template_amount)
        changes = {"reset": True, "amount": after.amount}
        return self._replace_instance(month, collection, data, index, after, entry, changes)

    def reset_bill_instance(self, month: str, instance_id: UUID) -> BillInstance:
        """Put the template's current default amount back on a bill instance."""
        return self._reset_instance(month, "bill_instances", instance_id)

    def reset_income_instance(self, month: str, instance_id: UUID) -> IncomeInstance:
        return self._reset_instance(month, "income_instances", instance_id)

    # -------------------------------------------------------------------------
    # Balances and leftover
    # -------------------------------------------------------------------------

    @_logs_rejections
    def update_bank_balance(self, month: str, source_id: UUID, balance: int) -> None:
        """
        Record a payment source's balance for the month.

        Credit card balances are zero or negative (amount owed); bank and
        cash balances are zero or positive. Balance edits are not undoable.
        """
        validator = self._validator()
        source = validator.check_payment_source(source_id)
        validator.check_balance(source, balance)

        with self._editing_month(month) as data:
            data.bank_balances[source.id] = balance
        self._logger.log_balance_updated(month, source.id, balance)

    def compute_leftover(self, month: str) -> LeftoverBreakdown:
        """
        Leftover for a month from its current in-memory state.

        Raises:
            NotFoundError: The month has not been generated
        """
        data = self._require_month(month)
        return calculate_leftover(data, self.templates.payment_sources)

    def leftover_display(self, month: str) -> dict[str, str]:
        """Leftover figures formatted with the configured currency symbol."""
        return self.compute_leftover(month).to_display(self._settings.currency_symbol)

    # -------------------------------------------------------------------------
    # Expenses
    # -------------------------------------------------------------------------

    def _add_expense(self, month: str, collection: str, fields: dict):
        model_cls, label = _EXPENSE_KINDS[collection]
        expense = InputValidator.build(model_cls, {**fields, "month": month})
        self._validator().check_payment_source(expense.payment_source_id)

        with self._editing_month(month) as data:
            getattr(data, collection).append(expense)

        self._logger.log_expense_changed(label, expense.id, month, "created")
        self.push_undo(create_undo_entry(None, expense))
        return expense.model_copy(deep=True)

    def _update_expense(self, month: str, collection: str, expense_id: UUID, updates: dict):
        _, label = _EXPENSE_KINDS[collection]
        if "month" in updates:
            raise ValidationError("Expenses cannot move between months", field="month")

        with self._editing_month(month) as data:
            items = getattr(data, collection)
            index = data.find(collection, expense_id)
            if index is None:
                raise NotFoundError(label, expense_id)
            before = items[index]
            after = InputValidator.merge(before, updates)
            if "payment_source_id" in updates:
                self._validator().check_payment_source(after.payment_source_id)
            after = after.model_copy(update={"updated_at": utc_now()})
            items[index] = after

        self._logger.log_expense_changed(label, expense_id, month, "updated")
        self.push_undo(create_undo_entry(before, after))
        return after.model_copy(deep=True)

    def _remove_expense(self, month: str, collection: str, expense_id: UUID) -> None:
        _, label = _EXPENSE_KINDS[collection]
        with self._editing_month(month) as data:
            items = getattr(data, collection)
            index = data.find(collection, expense_id)
            if index is None:
                raise NotFoundError(label, expense_id)
            removed = items.pop(index)

        self._logger.log_expense_changed(label, expense_id, month, "deleted")
        self.push_undo(create_undo_entry(removed, None))

    @_logs_rejections
    def add_variable_expense(
        self,
        month: str,
        name: str,
        amount: int,
        payment_source_id: UUID,
    ) -> VariableExpense:
        """Add a one-off spend (groceries, fuel) to a month."""
        return self._add_expense(month, "variable_expenses", {
            "name": name,
            "amount": amount,
            "payment_source_id": payment_source_id,
        })

    @_logs_rejections
    def update_variable_expense(self, month: str, expense_id: UUID, **updates: Any) -> VariableExpense:
        return self._update_expense(month, "variable_expenses", expense_id, updates)

    def remove_variable_expense(self, month: str, expense_id: UUID) -> None:
        self._remove_expense(month, "variable_expenses", expense_id)

    @_logs_rejections
    def add_free_flowing_expense(
        self,
        month: str,
        name: str,
        amount: int,
        payment_source_id: UUID,
    ) -> FreeFlowingExpense:
        """Add an unplanned expense to a month."""
        return self._add_expense(month, "free_flowing_expenses", {
            "name": name,
            "amount": amount,
            "payment_source_id": payment_source_id,
        })

    @_logs_rejections
    def update_free_flowing_expense(self, month: str, expense_id: UUID, **updates: Any) -> FreeFlowingExpense:
        return self._update_expense(month, "free_flowing_expenses", expense_id, updates)

    def remove_free_flowing_expense(self, month: str, expense_id: UUID) -> None:
        self._remove_expense(month, "free_flowing_expenses", expense_id)

    # -------------------------------------------------------------------------
    # Templates and reference data
    # -------------------------------------------------------------------------

    @contextmanager
    def _editing_templates(self) -> Iterator[TemplateCollection]:
        snapshot = self.templates.model_copy(deep=True)
        try:
            yield self.templates
            self._storage.save_templates(self.templates)
        except Exception:
            self.templates = snapshot
            raise

    def _check_references(self, collection: str, entity) -> None:
        _, category_type, _ = _TEMPLATE_KINDS[collection]
        if category_type is not None:
            self._validator().check_template_references(entity, category_type)
        else:
            InputValidator.check_balance(entity, entity.balance)

    def _check_recorded_balances(self, source: PaymentSource) -> None:
        """Balances already entered for a source must fit its (new) type."""
        for data in self._all_months():
            balance = data.bank_balances.get(source.id)
            if balance is None:
                continue
            try:
                InputValidator.check_balance(source, balance)
            except ValidationError:
                raise ValidationError(
                    f"{source.name} has a {data.month} balance of {format_cents(balance)}, "
                    f"which a {source.type.value} account cannot hold",
                    field="type",
                ) from None

    def template_in_use(self, template_id: UUID) -> bool:
        """
        Whether a month or another template still refers to this template
        or payment source. Loads persisted months that are not cached yet.
        """
        templates = self.templates.bills + self.templates.incomes
        if any(t.payment_source_id == template_id for t in templates):
            return True
        for data in self._all_months():
            instances = data.bill_instances + data.income_instances
            expenses = data.variable_expenses + data.free_flowing_expenses
            if any(i.template_id == template_id for i in instances):
                return True
            if template_id in data.bank_balances:
                return True
            if any(e.payment_source_id == template_id for e in expenses):
                return True
        return False

    def _create_template(self, collection: str, fields: dict):
        model_cls, _, label = _TEMPLATE_KINDS[collection]
        entity = InputValidator.build(model_cls, fields)
        if self.templates.find(collection, entity.id) is not None:
            raise ValidationError(f"{label} {entity.id} already exists", field="id")
        self._check_references(collection, entity)

        with self._editing_templates() as templates:
            getattr(templates, collection).append(entity)

        self._logger.log_template_changed(label, entity.id, "created")
        self.push_undo(create_undo_entry(None, entity))
        return entity.model_copy(deep=True)

    def _update_template(self, collection: str, entity_id: UUID, updates: dict, action: str = "updated"):
        _, _, label = _TEMPLATE_KINDS[collection]
        index = self.templates.find(collection, entity_id)
        if index is None:
            raise NotFoundError(label, entity_id)
        before = getattr(self.templates, collection)[index]
        after = InputValidator.merge(before, updates)
        self._check_references(collection, after)
        if collection == "payment_sources" and after.type != before.type:
            self._check_recorded_balances(after)
        after = after.model_copy(update={"updated_at": utc_now()})

        with self._editing_templates() as templates:
            getattr(templates, collection)[index] = after

        self._logger.log_template_changed(label, entity_id, action)
        self.push_undo(create_undo_entry(before, after))
        return after.model_copy(deep=True)

    @_logs_rejections
    def create_bill(self, **fields: Any) -> BillTemplate:
        """
        Add a recurring bill. Existing months are not touched; the bill
        shows up in months generated from now on.
        """
        return self._create_template("bills", fields)

    @_logs_rejections
    def update_bill(self, bill_id: UUID, **updates: Any) -> BillTemplate:
        """Edit a bill template. Instances in existing months keep their values."""
        return self._update_template("bills", bill_id, updates)

    def deactivate_bill(self, bill_id: UUID) -> BillTemplate:
        """Stop generating a bill in new months. The template is kept."""
        return self._update_template("bills", bill_id, {"active": False}, action="deactivated")

    @_logs_rejections
    def create_income(self, **fields: Any) -> IncomeTemplate:
        return self._create_template("incomes", fields)

    @_logs_rejections
    def update_income(self, income_id: UUID, **updates: Any) -> IncomeTemplate:
        return self._update_template("incomes", income_id, updates)

    def deactivate_income(self, income_id: UUID) -> IncomeTemplate:
        return self._update_template("incomes", income_id, {"active": False}, action="deactivated")

    @_logs_rejections
    def create_payment_source(self, **fields: Any) -> PaymentSource:
        return self._create_template("payment_sources", fields)

    @_logs_rejections
    def update_payment_source(self, source_id: UUID, **updates: Any) -> PaymentSource:
        return self._update_template("payment_sources", source_id, updates)

    def deactivate_payment_source(self, source_id: UUID) -> PaymentSource:
        return self._update_template(
            "payment_sources", source_id, {"active": False}, action="deactivated"
        )

    @_logs_rejections
    def create_category(self, **fields: Any) -> Category:
        """Add a category. Categories are reference data and are not undoable."""
        category = InputValidator.build(Category, fields)
        with self._editing_templates() as templates:
            templates.categories.append(category)
        self._logger.log_template_changed("category", category.id, "created")
        return category.model_copy(deep=True)

    # -------------------------------------------------------------------------
    # Undo
    # -------------------------------------------------------------------------

    def _save_undo(self) -> None:
        """
        Persist the stack when persist_undo is on. The mutation it records
        is already committed, so a failed write is logged rather than raised;
        the in-memory stack stays usable and the next save catches up.
        """
        if not self._settings.persist_undo:
            return
        try:
            self._storage.save_undo(self._undo.entries())
        except StorageError as e:
            self._logger.log_storage_write_failed(e.path or "undo", e.message)

    def push_undo(self, entry: UndoEntry) -> None:
        """Record a completed mutation. A full stack drops its oldest entry."""
        self._undo.push(entry)
        self._save_undo()
        self._logger.log_undo_pushed(entry.entity_type, entry.entity_id, self._undo.depth)

    def peek_undo_depth(self) -> int:
        return self._undo.depth

    def undo_entries(self) -> list[UndoEntry]:
        """Entries oldest first, for display."""
        return [entry.model_copy(deep=True) for entry in self._undo.entries()]

    def undo(self, expected_depth: Optional[int] = None) -> Optional[RevertedEntity]:
        """
        Revert the most recent mutation.

        Args:
            expected_depth: Depth the caller last saw; a mismatch means the
                caller's view is stale

        Returns:
            The reverted entity, or None if there was nothing to undo

        Raises:
            UndoDepthMismatchError: expected_depth does not match
            NotFoundError / ReadOnlyMonthError: The entry's target cannot be
                reverted; the stack is left unchanged
            ValidationError: Restoring a payment source's old type would
                contradict balances recorded since; the stack is left unchanged
        """
        if expected_depth is not None and expected_depth != self._undo.depth:
            raise UndoDepthMismatchError(expected_depth, self._undo.depth)

        entry = self._undo.peek()
        if entry is None:
            self._logger.log_undo_empty()
            return None

        scope, collection = revert_scope(entry)
        if collection == "payment_sources" and entry.old_value is not None:
            self._check_recorded_balances(entry.old_value)
        if scope == "templates":
            with self._editing_templates():
                restored = apply_revert(entry, self)
        else:
            with self._editing_month(entry.month):
                restored = apply_revert(entry, self)

        self._undo.pop()
        self._save_undo()
        self._logger.log_undo_applied(entry.entity_type, entry.entity_id, self._undo.depth)
        return RevertedEntity(
            entry=entry,
            entity=restored.model_copy(deep=True) if restored is not None else None,
        )

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def flush(self) -> int:
        """Write anything the storage still has queued. Returns writes performed."""
        if isinstance(self._storage, AutoSaver):
            return self._storage.flush()
        return 0

    def close(self) -> None:
        self.flush()
