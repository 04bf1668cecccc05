from datetime import datetime
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ReviewAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"


class MembershipStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


REVIEW_OUTCOMES = {
    ReviewAction.APPROVE: MembershipStatus.APPROVED,
    ReviewAction.REJECT: MembershipStatus.REJECTED,
}


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, use_enum_values=True)


class MembershipReview(CamelModel):
    action: ReviewAction


class ReviewResult(CamelModel):
    request_id: str
    status: MembershipStatus
    message: str
    warnings: List[str] = Field(default_factory=list)


class MembershipRequestCreate(CamelModel):
    club_id: str = Field(..., min_length=1)


class MembershipRequestCreated(CamelModel):
    request_id: str
    club_name: str
    status: MembershipStatus


class MembershipRequestGet(CamelModel):
    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True, use_enum_values=True)

    id: str
    club_id: str
    status: MembershipStatus
    requested_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None


class MembershipStatusGet(CamelModel):
    has_club: bool
    favorite_club_id: Optional[str] = None
    effective_club_id: Optional[str] = None
    pending_requests: List[MembershipRequestGet] = Field(default_factory=list)
    approved_requests: List[MembershipRequestGet] = Field(default_factory=list)


class PendingRequestEntry(CamelModel):
    id: str
    user_id: str
    full_name: str
    email: str
    requested_at: Optional[datetime] = None


class PendingClubCount(CamelModel):
    club_id: str
    club_name: str
    club_city: Optional[str] = None
    club_slug: str
    count: int


class PendingSummary(CamelModel):
    total_pending: int
    by_club: List[PendingClubCount] = Field(default_factory=list)
