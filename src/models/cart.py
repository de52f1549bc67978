"""Cart models: the persisted minimal cart and the reconciled view."""

from __future__ import annotations

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from src.models.product import Variant


class CartLine(BaseModel):
    """A persisted cart line pointing at a design and an optional size.

    Lines reference the design rather than a variant id so they survive
    variant re-keying on the backend. ``size_name`` is absent on lines written
    before size-aware storage existed.
    """

    model_config = ConfigDict(frozen=True)

    design_id: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("design_id", "designId", "shirtId"),
        serialization_alias="designId",
    )
    size_name: str | None = Field(
        None,
        validation_alias=AliasChoices("size_name", "sizeName", "size"),
        serialization_alias="sizeName",
    )
    quantity: int = Field(1, ge=1)

    @property
    def key(self) -> tuple[str, str | None]:
        return (self.design_id, self.size_name)


class Cart(BaseModel):
    """Persisted cart. Totals are never stored, only recomputed."""

    lines: list[CartLine] = Field(
        default_factory=list,
        validation_alias=AliasChoices("lines", "items"),
    )

    def find(self, design_id: str, size_name: str | None) -> CartLine | None:
        for line in self.lines:
            if line.key == (design_id, size_name):
                return line
        return None

    @property
    def design_ids(self) -> list[str]:
        """Distinct design ids in first-seen order."""
        return list(dict.fromkeys(line.design_id for line in self.lines))

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.lines)


class ReconciledLine(BaseModel):
    """A cart line paired with the live variant it resolved to, if any."""

    cart_line: CartLine
    variant: Variant | None = None
    quantity: int = Field(..., ge=1)

    @property
    def resolved(self) -> bool:
        return self.variant is not None

    @property
    def line_total(self) -> float:
        if self.variant is None:
            return 0
        return self.variant.final_price * self.quantity


class ReconciledCartView(BaseModel):
    """Display-ready cart. Ephemeral, never persisted."""

    lines: list[ReconciledLine] = Field(default_factory=list)
    total_amount: float = 0
    item_count: int = 0

    @property
    def pending_lines(self) -> list[ReconciledLine]:
        return [line for line in self.lines if not line.resolved]


class AddCartLineRequest(BaseModel):
    """Incoming payload for POST /cart/lines."""

    design_id: str = Field(..., min_length=1)
    size_name: str | None = None
    quantity: int = Field(1, ge=1)


class SetQuantityRequest(BaseModel):
    """Incoming payload for PUT /cart/lines/{design_id}.

    A quantity of zero or below removes the line.
    """

    size_name: str | None = None
    quantity: int
