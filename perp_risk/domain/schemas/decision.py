from __future__ import annotations

from typing import Any, List, Mapping, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from perp_risk.core.errors import DecisionValidationError
from perp_risk.domain.models import Decision, Direction, Intent, OrderPreference

# Intents that open or resize a position and therefore must carry protection
PROTECTED_INTENTS = {Intent.OPEN.value, Intent.ADJUST.value, Intent.HEDGE.value}
VALID_INTENTS = {i.value for i in Intent}
VALID_DIRECTIONS = {d.value for d in Direction}
VALID_ORDER_PREFERENCES = {p.value for p in OrderPreference}


def _upper(value: Any) -> str:
    return str(value or "").strip().upper()


class DecisionSchema(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    symbol: str = Field(min_length=1)
    intent: str
    direction: str
    target_exposure_pct: float = Field(default=0.0, ge=0.0, le=1.0)
    adjustment_pct: float = Field(default=0.0, ge=-1.0, le=1.0)
    confidence: float = Field(ge=0.0, le=1.0)
    reasoning: str = Field(min_length=1)
    order_preference: str = ""
    stop_loss: str = Field(default="", alias="new_stop_loss")
    take_profit: str = Field(default="", alias="new_take_profit")
    risk_comment: str = ""

    @field_validator("intent", mode="before")
    @classmethod
    def _intent(cls, value: Any) -> str:
        intent = _upper(value)
        if intent not in VALID_INTENTS:
            raise ValueError(f"invalid intent {value!r}")
        return intent

    @field_validator("direction", mode="before")
    @classmethod
    def _direction(cls, value: Any) -> str:
        direction = _upper(value)
        if direction not in VALID_DIRECTIONS:
            raise ValueError(f"invalid direction {value!r}")
        return direction

    @field_validator("order_preference", mode="before")
    @classmethod
    def _order_preference(cls, value: Any) -> str:
        preference = _upper(value)
        if preference and preference not in VALID_ORDER_PREFERENCES:
            raise ValueError(f"invalid order_preference {value!r}")
        return preference

    @field_validator("stop_loss", "take_profit", mode="before")
    @classmethod
    def _level_text(cls, value: Any) -> str:
        if value is None:
            return ""
        return str(value).strip()

    @model_validator(mode="after")
    def _require_protection(self) -> "DecisionSchema":
        if self.intent in PROTECTED_INTENTS:
            if not self.stop_loss:
                raise ValueError(f"new_stop_loss is required for {self.intent}")
            if not self.take_profit:
                raise ValueError(f"new_take_profit is required for {self.intent}")
        return self

    def to_domain(self) -> Decision:
        return Decision(
            symbol=self.symbol,
            intent=self.intent,
            direction=self.direction,
            target_exposure_pct=self.target_exposure_pct,
            adjustment_pct=self.adjustment_pct,
            confidence=self.confidence,
            order_preference=self.order_preference,
            stop_loss=self.stop_loss,
            take_profit=self.take_profit,
            reasoning=self.reasoning,
            risk_comment=self.risk_comment,
        )


class DecisionEnvelopeSchema(BaseModel):
    decisions: List[DecisionSchema]


def parse_decisions(payload: Union[str, bytes, Mapping[str, Any]]) -> List[Decision]:
    """
    Validate a decision envelope (JSON text or already-decoded dict).

    Raises DecisionValidationError with pydantic's error summary.
    """
    try:
        if isinstance(payload, (str, bytes)):
            envelope = DecisionEnvelopeSchema.model_validate_json(payload)
        else:
            envelope = DecisionEnvelopeSchema.model_validate(payload)
    except ValidationError as exc:
        raise DecisionValidationError(str(exc)) from exc
    return [item.to_domain() for item in envelope.decisions]
