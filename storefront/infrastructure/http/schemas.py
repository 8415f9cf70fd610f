"""
Name: Wire Schemas (pydantic)

Responsibilities:
  - Validate REST payloads at the boundary
  - Map them to domain entities (Product, CartSnapshot)

Collaborators:
  - pydantic: parsing/validation
  - infrastructure.http.*_api: response mapping

Constraints:
  - Unknown fields are ignored; ids are coerced to strings
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ...domain.entities import CartLine, CartSnapshot, Product, normalize_product_id


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class ProductPayload(_Payload):
    id: str
    name: str = ""
    new_price: float
    image: str | None = None
    old_price: float | None = None
    category: str | None = None

    @field_validator("id", mode="before")
    @classmethod
    def id_as_string(cls, v: Any) -> str:
        return normalize_product_id(v)

    def to_entity(self) -> Product:
        return Product(
            id=self.id,
            name=self.name,
            new_price=self.new_price,
            image=self.image,
            old_price=self.old_price,
            category=self.category,
        )


class CartItemPayload(_Payload):
    product_id: str = Field(alias="productId")
    quantity: int
    price: float | None = None

    @field_validator("product_id", mode="before")
    @classmethod
    def product_id_as_string(cls, v: Any) -> str:
        # R: populated carts may embed the product document
        if isinstance(v, dict):
            v = v.get("id", v.get("_id"))
        return normalize_product_id(v)


class CartPayload(_Payload):
    items: list[CartItemPayload] = Field(default_factory=list)

    def to_snapshot(self) -> CartSnapshot:
        return CartSnapshot(
            lines=tuple(
                CartLine(product_id=i.product_id, quantity=i.quantity, price=i.price)
                for i in self.items
            )
        )


class TokenResponse(_Payload):
    success: bool = True
    token: str | None = None
    error: str | None = None
