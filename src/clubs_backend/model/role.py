from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import relationship

from .base import Base, new_id


class Role(Base):
    __tablename__ = 'role'

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(64), unique=True, nullable=False)
    description = Column(String(4096))
    level = Column(Integer, nullable=False)
    created_at = Column(DateTime(True), nullable=False, server_default=func.now())

    user_roles = relationship('UserRole', back_populates='role')


class UserRole(Base):
    __tablename__ = 'user_role'
    __table_args__ = (
        UniqueConstraint(
            'user_id', 'role_id', 'club_id',
            name='user_role_user_role_club_key',
            postgresql_nulls_not_distinct=True,
        ),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(ForeignKey('user.id', ondelete='CASCADE'), nullable=False, index=True)
    role_id = Column(ForeignKey('role.id', ondelete='RESTRICT', onupdate='CASCADE'), nullable=False)
    club_id = Column(ForeignKey('club.id', ondelete='CASCADE'))
    granted_by = Column(ForeignKey('user.id', ondelete='SET NULL'))
    granted_at = Column(DateTime(True), nullable=False, server_default=func.now())
    expires_at = Column(DateTime(True))
    created_at = Column(DateTime(True), nullable=False, server_default=func.now())

    role = relationship('Role', back_populates='user_roles')
    user = relationship('User', foreign_keys=[user_id], back_populates='user_roles')
    club = relationship('Club')
