from typing import Any, Iterable, Mapping

from sqlalchemy import Update, update

from app.services.exceptions import ValidationError


class PartialUpdate:
    """
    Builds parameterized ``UPDATE`` statements for a fixed set of columns.

    The set of updatable fields is declared once per model, so a request can
    never touch a column it was not meant to (``stock`` for instance).

    Example:
        PRODUCT_UPDATE = PartialUpdate(Product, {"name", "sale_price"})
        stmt = PRODUCT_UPDATE.statement(product_id, {"name": "Milk"})
    """

    def __init__(self, model, fields: Iterable[str]):
        unknown = [f for f in fields if f not in model.__table__.columns]
        if unknown:
            raise ValueError(f"{model.__name__} has no columns {unknown}")
        self.model = model
        self.fields = frozenset(fields)
        self.nullable = frozenset(f for f in self.fields if model.__table__.columns[f].nullable)

    def changes(self, data: Mapping[str, Any]) -> dict:
        """
        Keep the fields a request actually sets.

        An explicit null clears a nullable column; on a NOT NULL column it
        means "leave unchanged" and is dropped.
        """
        return {
            field: value
            for field, value in data.items()
            if value is not None or field in self.nullable
        }

    def values(self, changes: Mapping[str, Any]) -> dict:
        """Validate the requested changes and return them as bind values."""
        rejected = sorted(set(changes) - self.fields)
        if rejected:
            raise ValidationError(f"Fields cannot be updated: {', '.join(rejected)}")
        if not changes:
            raise ValidationError("No fields to update")
        return dict(changes)

    def statement(self, pk: int, changes: Mapping[str, Any]) -> Update:
        return (
            update(self.model)
            .where(self.model.id == pk)
            .values(**self.values(changes))
            .execution_options(synchronize_session="fetch")
        )
