from .constants import OPEN_FORM_CONTEXTS, OPEN_FORM_POP_UP_TYPES
from .entity import OPEN_FORM_OWNERS, check_owner
from .utils import normalize_id, to_int

_FIELDS = (
    "form_id_open",
    "relation_index_open",
    "attribute_id_apply",
    "relation_index_apply",
    "pop_up_type",
    "max_height",
    "max_width",
)


def _where(entity, context):
    if context is None:
        return f"WHERE {entity.column} = ? AND context IS NULL", ()
    return f"WHERE {entity.column} = ? AND context = ?", (context,)


def _check(entity, context):
    check_owner(entity, OPEN_FORM_OWNERS, "open form")
    if context not in OPEN_FORM_CONTEXTS:
        raise ValueError(f"invalid open form context: {context!r}")


def get_tx(conn, entity, entity_id, context=None):
    """Return the binding of an owner in a context, or None if none is configured."""
    _check(entity, context)
    where, args = _where(entity, context)
    row = conn.execute(
        f"SELECT {','.join(_FIELDS)} FROM open_form {where}",
        (entity_id, *args),
    ).fetchone()
    if not row:
        return None
    return {name: row[name] for name in _FIELDS}


def set_tx(conn, entity, entity_id, f, context=None):
    """Replace the binding of an owner in a context; an empty binding only removes it."""
    _check(entity, context)
    if not entity_id:
        raise ValueError("open form owner id is required")

    form_id_open = normalize_id((f or {}).get("form_id_open"))
    if form_id_open is not None:
        relation_index_apply = f.get("relation_index_apply")
        if isinstance(relation_index_apply, bool) or not isinstance(relation_index_apply, int):
            raise ValueError("open form relation index to apply is required")
        pop_up_type = f.get("pop_up_type")
        if pop_up_type not in OPEN_FORM_POP_UP_TYPES:
            raise ValueError(f"invalid open form pop-up type: {pop_up_type!r}")
        values = (
            form_id_open,
            to_int(f.get("relation_index_open"), default=0),
            normalize_id(f.get("attribute_id_apply")),
            relation_index_apply,
            pop_up_type,
            to_int(f.get("max_height"), default=0),
            to_int(f.get("max_width"), default=0),
        )

    where, args = _where(entity, context)
    conn.execute(f"DELETE FROM open_form {where}", (entity_id, *args))
    if form_id_open is None:
        return

    conn.execute(
        f"""
        INSERT INTO open_form({entity.column},context,{','.join(_FIELDS)})
        VALUES(?,?,?,?,?,?,?,?,?)
        """,
        (entity_id, context, *values),
    )
