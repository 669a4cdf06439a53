"""Tile record model: the unit of migration."""

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

# Fields compared during verification, in reporting order
RECORD_FIELDS: tuple[str, ...] = (
    "owner",
    "metadata_ref",
    "payment_flag",
    "created_at",
    "original_buyer",
)


class TileRecord(BaseModel):
    """One tile's ownership and metadata entry as stored in a registry.

    Records are immutable once read; the pipeline copies them verbatim.
    Remote payloads may use the registry's camelCase names
    (``tileId``, ``metadataUri``, ``isNativePayment``, ``createdAt``,
    ``originalBuyer``), which are accepted on input.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: int = Field(ge=0, validation_alias=AliasChoices("id", "tileId"))
    owner: str
    metadata_ref: str = Field(
        default="", validation_alias=AliasChoices("metadata_ref", "metadataUri", "metadataRef")
    )
    payment_flag: bool = Field(
        validation_alias=AliasChoices("payment_flag", "isNativePayment", "paymentFlag")
    )
    created_at: int = Field(ge=0, validation_alias=AliasChoices("created_at", "createdAt"))
    original_buyer: str = Field(
        validation_alias=AliasChoices("original_buyer", "originalBuyer")
    )

    def diff(self, other: "TileRecord") -> list[str]:
        """Return the names of fields whose values differ from ``other``."""
        return [name for name in RECORD_FIELDS if getattr(self, name) != getattr(other, name)]

    def to_wire(self) -> dict[str, Any]:
        """Serialize using the registry's camelCase field names."""
        return {
            "tileId": self.id,
            "owner": self.owner,
            "metadataUri": self.metadata_ref,
            "isNativePayment": self.payment_flag,
            "createdAt": self.created_at,
            "originalBuyer": self.original_buyer,
        }
