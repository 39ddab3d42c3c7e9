from enum import Enum

from .utils import new_id, normalize_id


class EntityKind(Enum):
    """Schema entity kinds with the table they live in and the column other rows reference them by."""

    MODULE = ("module", "module_id")
    FORM = ("form", "form_id")
    FIELD = ("field", "field_id")
    TAB = ("tab", "tab_id")
    ARTICLE = ("article", "article_id")

    def __init__(self, table, column):
        self.table = table
        self.column = column

    @classmethod
    def from_name(cls, name):
        for kind in cls:
            if kind.table == name:
                return kind
        raise ValueError(f"unknown entity kind: {name!r}")


# owner kinds allowed per dependent entity
TAB_OWNERS = (EntityKind.FORM, EntityKind.MODULE)
OPEN_FORM_OWNERS = (EntityKind.FIELD, EntityKind.FORM)
ARTICLE_ASSIGN_TARGETS = (EntityKind.FORM, EntityKind.MODULE)

# caption contents each entity kind may carry
CAPTION_CONTENTS = {
    EntityKind.MODULE: ("moduleTitle",),
    EntityKind.FORM: ("formTitle",),
    EntityKind.FIELD: ("fieldHelp", "fieldTitle"),
    EntityKind.TAB: ("tabTitle",),
    EntityKind.ARTICLE: ("articleBody", "articleTitle"),
}


def check_owner(kind, allowed, what):
    if kind not in allowed:
        raise ValueError(f"invalid {what} entity: {getattr(kind, 'table', kind)}")


def check_create_id(conn, kind, entity_id):
    """Return (id, known) for an entity about to be written.

    A missing id is replaced by a new one (never known). Otherwise the id is looked up
    on the entity's table; the caller's write transaction must already hold the
    database write lock so no other writer can insert the same id before the write.
    """
    entity_id = normalize_id(entity_id)
    if entity_id is None:
        return new_id(), False
    row = conn.execute(f"SELECT 1 FROM {kind.table} WHERE id = ?", (entity_id,)).fetchone()
    return entity_id, row is not None
