from dataclasses import dataclass
from decimal import Decimal
from enum import Enum


class EditStatus(Enum):
    IDLE = "idle"
    EDITING = "editing"
    SAVING = "saving"
    ERROR = "error"


@dataclass(frozen=True)
class EditContext:
    """Where an editable cell sits; forwarded to the persistence audit log."""
    set_key: str
    product: str
    tier: str | None = None
    property: str | None = None
    fee: Decimal | None = None
    min_ltv: Decimal | None = None
    max_ltv: Decimal | None = None

    def to_payload(self) -> dict:
        payload: dict = {"set_key": self.set_key, "product": self.product}
        if self.tier is not None:
            payload["tier"] = self.tier
        if self.property is not None:
            payload["property"] = self.property
        for key, value in (("fee", self.fee), ("min_ltv", self.min_ltv), ("max_ltv", self.max_ltv)):
            if value is not None:
                payload[key] = float(value)
        return payload


@dataclass(frozen=True)
class EditSession:
    record_id: int | str
    field: str
    raw_input: str
    context: EditContext
    table_name: str
    old_value: Decimal | None = None
    status: EditStatus = EditStatus.EDITING
    error_message: str | None = None
