"""Threshold evaluation — value + warning/critical pair → severity tier."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, model_validator

from pvehealth.core.types import Severity


def classify(value: float, warning: float, critical: float) -> Severity:
    """Map a sampled value onto a severity tier.

    Pure and total: ``value >= critical`` is CRITICAL, ``value >= warning``
    is WARNING, anything else is OK.
    """
    if value >= critical:
        return Severity.CRITICAL
    if value >= warning:
        return Severity.WARNING
    return Severity.OK


class ThresholdPair(BaseModel):
    """A (warning, critical) pair; ``critical`` must exceed ``warning``."""

    model_config = ConfigDict(frozen=True)

    warning: float
    critical: float

    @model_validator(mode="after")
    def _critical_above_warning(self) -> ThresholdPair:
        if self.critical <= self.warning:
            raise ValueError(
                f"critical threshold ({self.critical}) must be greater than "
                f"warning threshold ({self.warning})"
            )
        return self

    def classify(self, value: float) -> Severity:
        return classify(value, self.warning, self.critical)
