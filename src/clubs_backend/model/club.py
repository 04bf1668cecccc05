from sqlalchemy import (
    Boolean, Column, DateTime, Enum, ForeignKey, Index, Integer, String, func, text
)
from sqlalchemy.orm import relationship

from .base import Base, new_id

MEMBERSHIP_STATUSES = ('pending', 'approved', 'rejected')


class Club(Base):
    __tablename__ = 'club'

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), unique=True, nullable=False)
    city = Column(String(255))
    email = Column(String(320))
    phone = Column(String(64))
    active = Column(Boolean, nullable=False, server_default=text("true"), default=True)
    created_at = Column(DateTime(True), nullable=False, server_default=func.now())

    coaches = relationship('Coach', back_populates='club', uselist=True, lazy='select')
    membership_requests = relationship('MembershipRequest', back_populates='club', uselist=True, lazy='select')


class Coach(Base):
    __tablename__ = 'coach'

    id = Column(String(36), primary_key=True, default=new_id)
    club_id = Column(ForeignKey('club.id', ondelete='SET NULL'))
    name = Column(String(255), nullable=False)
    active = Column(Boolean, nullable=False, server_default=text("true"), default=True)
    display_order = Column(Integer, nullable=False, server_default=text("0"), default=0)

    club = relationship('Club', back_populates='coaches')


class MembershipRequest(Base):
    __tablename__ = 'club_membership_request'
    __table_args__ = (
        # at most one outstanding request per (user, club)
        Index(
            'club_membership_request_pending_key', 'user_id', 'club_id',
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
        Index('club_membership_request_club_status_idx', 'club_id', 'status'),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(ForeignKey('user.id', ondelete='CASCADE'), nullable=False, index=True)
    club_id = Column(ForeignKey('club.id', ondelete='CASCADE'), nullable=False)
    status = Column(
        Enum(*MEMBERSHIP_STATUSES, name='membership_request_status'),
        nullable=False, server_default=text("'pending'"), default='pending'
    )
    requested_at = Column(DateTime(True), nullable=False, server_default=func.now())
    reviewed_at = Column(DateTime(True))
    reviewed_by = Column(ForeignKey('user.id', ondelete='SET NULL'))

    user = relationship('User', foreign_keys=[user_id], back_populates='membership_requests')
    reviewer = relationship('User', foreign_keys=[reviewed_by])
    club = relationship('Club', back_populates='membership_requests')
