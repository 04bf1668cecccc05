from sqlalchemy import Column, DateTime, ForeignKey, String, func
from sqlalchemy.orm import relationship

from .base import Base, new_id


class User(Base):
    __tablename__ = 'user'

    id = Column(String(36), primary_key=True, default=new_id)
    email = Column(String(320), unique=True)
    created_at = Column(DateTime(True), nullable=False, server_default=func.now())

    # Relationships
    profile = relationship("Profile", back_populates="user", uselist=False, lazy="select")
    user_roles = relationship("UserRole", foreign_keys="UserRole.user_id", back_populates="user", uselist=True, lazy="select")
    membership_requests = relationship(
        "MembershipRequest", foreign_keys="MembershipRequest.user_id", back_populates="user", uselist=True, lazy="select"
    )


class Profile(Base):
    __tablename__ = 'user_profile'

    id = Column(ForeignKey('user.id', ondelete='CASCADE'), primary_key=True)
    username = Column(String(255), unique=True, nullable=False)
    full_name = Column(String(255))
    favorite_club_id = Column(ForeignKey('club.id', ondelete='SET NULL'))
    updated_at = Column(DateTime(True), nullable=False, server_default=func.now(), onupdate=func.now())

    user = relationship('User', back_populates='profile')
    favorite_club = relationship('Club')
