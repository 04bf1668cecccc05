"""
Role setup utilities for initializing the role table.

The role table holds the flat name -> level mapping that the resolver joins
against. It is applied at server startup and by the `clubs seed-roles`
command; applying it twice is a no-op.
"""

from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from clubs_backend.model.base import new_id
from clubs_backend.model.role import Role
from clubs_backend.permissions.core import dialect_insert
from clubs_backend.permissions.principal import RoleLevels, role_levels


def default_roles(levels: Optional[RoleLevels] = None) -> List[Tuple[str, int, Optional[str]]]:
    """(name, level, description) of every known role, most privileged first"""
    levels = levels or role_levels
    return sorted(
        ((name, level, RoleLevels.DESCRIPTIONS.get(name)) for name, level in levels.levels.items()),
        key=lambda role: (role[1], role[0]),
    )


def db_apply_default_roles(db: Session, levels: Optional[RoleLevels] = None):

    insert = dialect_insert(db)

    stmt = insert(Role).values([
        {"id": new_id(), "name": name, "level": level, "description": description}
        for name, level, description in default_roles(levels)
    ])

    stmt = stmt.on_conflict_do_update(
        index_elements=["name"],
        set_={"level": stmt.excluded.level, "description": stmt.excluded.description},
    )
    db.execute(stmt)
    db.commit()
