"""Pydantic schemas for the subscriber API."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from websub.subscriptions.models import SubscriptionMode, SubscriptionState


class VerificationQuery(BaseModel):
    """Query string of a hub's verification GET."""

    model_config = ConfigDict(populate_by_name=True)

    mode: SubscriptionMode = Field(..., alias="hub.mode")
    topic: str = Field(..., alias="hub.topic", min_length=1)
    challenge: str = Field(..., alias="hub.challenge", min_length=1)
    lease_seconds: Optional[int] = Field(default=None, alias="hub.lease_seconds", ge=0)


class SubscriptionResponse(BaseModel):
    """Schema for subscription response."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    topic: str
    hub: str
    callback: str
    state: SubscriptionState
    lease_seconds: Optional[int] = None
    expired_at: Optional[datetime] = None
    last_successful_verification_at: Optional[datetime] = None
    last_unsuccessful_verification_at: Optional[datetime] = None
    last_received_content_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class SubscriptionListResponse(BaseModel):
    """Schema for listing subscriptions."""

    subscriptions: list[SubscriptionResponse]
    total: int
    page: int
    size: int
