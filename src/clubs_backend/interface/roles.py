from typing import Optional
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CoachRoleGet(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    is_coach: bool
    coach_club_id: Optional[str] = None


class MyClubGet(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    club_id: Optional[str] = None
    name: Optional[str] = None
    slug: Optional[str] = None
    city: Optional[str] = None


class ContactVisibilityGet(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    can_view_contact: bool
