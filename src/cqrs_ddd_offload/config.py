"""OffloadSettings: immutable configuration for the offloading clients."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .sizing import MAX_OFFLOAD_MESSAGE_BYTES, MAX_QUEUE_MESSAGE_BYTES, SizePolicy


class OffloadSettings(BaseModel):
    """Bucket, region and size thresholds shared by the SQS and SNS clients."""

    model_config = ConfigDict(frozen=True)

    bucket: str = Field(
        ..., min_length=1, description="Bucket receiving offloaded payloads"
    )
    region_name: str = Field(
        default="us-east-1",
        description="Recorded in references when the queue address carries no region",
    )
    always_offload: bool = False
    direct_limit: int = Field(default=MAX_QUEUE_MESSAGE_BYTES, ge=1)
    absolute_limit: int = Field(default=MAX_OFFLOAD_MESSAGE_BYTES, ge=1)

    @model_validator(mode="after")
    def _check_limits(self) -> OffloadSettings:
        if self.absolute_limit <= self.direct_limit:
            raise ValueError("absolute_limit must be greater than direct_limit")
        return self

    def size_policy(self) -> SizePolicy:
        return SizePolicy(
            direct_limit=self.direct_limit,
            absolute_limit=self.absolute_limit,
            always_offload=self.always_offload,
        )
