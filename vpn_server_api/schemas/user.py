from datetime import datetime
from pydantic import BaseModel, Field


class UserResponse(BaseModel):
    user_id: str
    is_disabled: bool
    last_authenticated_at: datetime | None
    created_at: datetime


class UserIdRequest(BaseModel):
    user_id: str = Field(min_length=1, max_length=255)


class IsDisabledUserResponse(BaseModel):
    user_id: str
    is_disabled: bool


class LastAuthenticatedAtPingRequest(UserIdRequest):
    entitlement_list: list[str] = []


class LastAuthenticatedAtResponse(BaseModel):
    user_id: str
    last_authenticated_at: datetime | None


class EntitlementListResponse(BaseModel):
    user_id: str
    entitlement_list: list[str]
