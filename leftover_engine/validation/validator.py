"""
Two-Stage Input Validation

STAGE 1 - SCHEMA VALIDATION:
- Types, required fields, formats
- Positive amounts, non-blank names, known billing periods, YYYY-MM months
- Delegated to the Pydantic models; failures become field-level
  ValidationErrors

STAGE 2 - REFERENCE VALIDATION:
- Payment sources and categories named by a template or expense exist
- Balances follow the sign convention of their payment source

IMPORTANT: Validation NEVER silently fixes input and always runs before
any state is touched, so a rejected call leaves nothing half-applied.
"""

from typing import Optional, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from leftover_engine.errors import ValidationError
from leftover_engine.models.budget import (
    CategoryType,
    PaymentSource,
    PaymentSourceType,
    TemplateCollection,
)


ModelT = TypeVar("ModelT", bound=BaseModel)


def _first_error(exc: PydanticValidationError) -> ValidationError:
    error = exc.errors()[0]
    loc = error.get("loc") or ()
    field = str(loc[0]) if loc else None
    message = error.get("msg", "Invalid value")
    if field:
        message = f"{field}: {message}"
    return ValidationError(message, field=field)


class InputValidator:
    """
    Validates user input before the engine applies it.

    Stage 1 runs without any context; stage 2 needs the template collection
    to check references.
    """

    def __init__(self, templates: Optional[TemplateCollection] = None):
        self._templates = templates

    # -------------------------------------------------------------------------
    # Stage 1: schema
    # -------------------------------------------------------------------------

    @staticmethod
    def build(model_cls: type[ModelT], data: dict) -> ModelT:
        """Construct a model from raw input, raising a field-level ValidationError."""
        try:
            return model_cls.model_validate(data)
        except PydanticValidationError as e:
            raise _first_error(e)

    @staticmethod
    def merge(model: ModelT, updates: dict, protected: tuple[str, ...] = ("id", "created_at")) -> ModelT:
        """
        Apply partial updates to a model and re-validate the result.

        Fields in protected cannot be changed through updates.
        """
        for name in updates:
            if name in protected:
                raise ValidationError(f"{name} cannot be changed", field=name)
            if name not in type(model).model_fields:
                raise ValidationError(f"Unknown field: {name}", field=name)
        data = model.model_dump()
        data.update(updates)
        return InputValidator.build(type(model), data)

    @staticmethod
    def check_amount(amount: object, field: str = "amount") -> int:
        """Amounts are whole cents and strictly positive."""
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise ValidationError(
                f"{field} must be a whole number of cents, got {amount!r}",
                field=field,
            )
        if amount <= 0:
            raise ValidationError(f"{field} must be greater than zero", field=field)
        return amount

    @staticmethod
    def check_flag(value: object, field: str) -> bool:
        """Flags are real booleans; "no" or 0 are not silently read as one."""
        if not isinstance(value, bool):
            raise ValidationError(f"{field} must be true or false, got {value!r}", field=field)
        return value

    @staticmethod
    def check_balance(source: PaymentSource, balance: object) -> int:
        """
        Balances are whole cents with the source's sign convention:
        funds (bank, cash) are >= 0, credit card debt is <= 0.
        """
        if isinstance(balance, bool) or not isinstance(balance, int):
            raise ValidationError(
                f"balance must be a whole number of cents, got {balance!r}",
                field="balance",
            )
        if source.type == PaymentSourceType.CREDIT_CARD and balance > 0:
            raise ValidationError(
                f"Credit card balance for {source.name} must be zero or negative (amount owed)",
                field="balance",
            )
        if source.type in (PaymentSourceType.BANK, PaymentSourceType.CASH) and balance < 0:
            raise ValidationError(
                f"Balance for {source.name} cannot be negative",
                field="balance",
            )
        return balance

    # -------------------------------------------------------------------------
    # Stage 2: references
    # -------------------------------------------------------------------------

    def _require_templates(self) -> TemplateCollection:
        if self._templates is None:
            raise ValidationError("No template collection to validate references against")
        return self._templates

    def check_payment_source(self, source_id) -> PaymentSource:
        source = self._require_templates().get("payment_sources", source_id)
        if source is None:
            raise ValidationError(
                f"Payment source {source_id} does not exist",
                field="payment_source_id",
            )
        return source

    def check_category(self, category_id, expected_type: Optional[CategoryType] = None) -> None:
        if category_id is None:
            return
        category = self._require_templates().get("categories", category_id)
        if category is None:
            raise ValidationError(
                f"Category {category_id} does not exist",
                field="category_id",
            )
        if expected_type is not None and category.type != expected_type:
            raise ValidationError(
                f"Category {category.name} is a {category.type.value} category",
                field="category_id",
            )

    def check_template_references(self, template, category_type: CategoryType) -> None:
        self.check_payment_source(template.payment_source_id)
        self.check_category(template.category_id, category_type)
