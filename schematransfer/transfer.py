"""Module export to and import from transfer files.

Export reads the whole entity graph of one module inside a single read
transaction. Import writes every entity of one or more transfer documents inside
a single write transaction: parents before children and owners before bindings,
with compatibility fixes applied to each version-sensitive value first. Any
failure rolls back the whole import.
"""

import json
import logging

from . import article, compatible, form, module, open_form, tab
from .constants import OPEN_FORM_CONTEXTS, SCHEMA_VERSION, TRANSFER_FILE_VERSION
from .entity import EntityKind
from .utils import normalize_id, now_iso

logger = logging.getLogger("SchemaTransfer")

_LIST_SECTIONS = ("forms", "tabs", "articles", "open_forms")


def export_module(conn, module_id):
    modules = module.get_tx(conn, [module_id])
    if not modules:
        raise KeyError("module not found")
    mod = modules[0]

    conn.check_deadline()
    forms = form.get_tx(conn, module_id)

    conn.check_deadline()
    tabs = [{"entity": "module", "entity_id": module_id, **t} for t in tab.get_tx(conn, EntityKind.MODULE, module_id)]
    for frm in forms:
        tabs.extend({"entity": "form", "entity_id": frm["id"], **t} for t in tab.get_tx(conn, EntityKind.FORM, frm["id"]))

    conn.check_deadline()
    articles = article.get_tx(conn, module_id)

    conn.check_deadline()
    owners = []
    for frm in forms:
        owners.append((EntityKind.FORM, frm["id"]))
        owners.extend((EntityKind.FIELD, f["id"]) for f in frm["fields"])
    open_forms = []
    for kind, owner_id in owners:
        for context in OPEN_FORM_CONTEXTS:
            binding = open_form.get_tx(conn, kind, owner_id, context)
            if binding is None:
                continue
            binding = {"entity": kind.table, "entity_id": owner_id, "context": context, **binding}
            open_forms.append(compatible.prepare_export("open_form", binding))

    return {
        "version": TRANSFER_FILE_VERSION,
        "app_version": SCHEMA_VERSION,
        "exported_at": now_iso(),
        "module": mod,
        "forms": forms,
        "tabs": tabs,
        "articles": articles,
        "open_forms": open_forms,
    }


def export_to_file(store, module_id, file_path, timeout=None):
    with store.transaction(write=False, timeout=timeout) as conn:
        doc = export_module(conn, module_id)
    write_transfer_file(doc, file_path)
    logger.info(
        "Exported module %s (%s): %d forms, %d tabs, %d articles, %d open forms",
        doc["module"]["name"],
        module_id,
        len(doc["forms"]),
        len(doc["tabs"]),
        len(doc["articles"]),
        len(doc["open_forms"]),
    )
    return file_path


def write_transfer_file(doc, file_path):
    with open(file_path, "w", encoding="utf-8") as fh:
        json.dump(doc, fh, ensure_ascii=False, indent=2, sort_keys=True)


def read_transfer_file(file_path):
    try:
        with open(file_path, "r", encoding="utf-8-sig") as fh:
            doc = json.load(fh)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ValueError(f"malformed transfer file: {exc}") from exc
    validate_document(doc)
    return doc


def validate_document(doc):
    if not isinstance(doc, dict):
        raise ValueError("transfer file must contain a JSON object")
    version = str(doc.get("version") or TRANSFER_FILE_VERSION)
    if version.split(".")[0] != TRANSFER_FILE_VERSION.split(".")[0]:
        raise ValueError(f"unsupported transfer file version: {version}")
    if not isinstance(doc.get("module"), dict):
        raise ValueError("transfer file contains no module")
    for section in _LIST_SECTIONS:
        if section in doc and not isinstance(doc[section], list):
            raise ValueError(f"transfer file section {section!r} must be a list")
        for item in doc.get(section) or []:
            if not isinstance(item, dict):
                raise ValueError(f"transfer file section {section!r} must contain objects")


def _prune_module_tx(conn, module_id, kept):
    """Delete entities of a module that the imported document no longer contains."""
    for row in conn.execute("SELECT id FROM form WHERE module_id = ?", (module_id,)).fetchall():
        if row["id"] not in kept["forms"]:
            form.del_tx(conn, row["id"])

    for row in conn.execute("SELECT id FROM article WHERE module_id = ?", (module_id,)).fetchall():
        if row["id"] not in kept["articles"]:
            article.del_tx(conn, row["id"])

    rows = conn.execute(
        """
        SELECT id FROM tab
        WHERE module_id = ?
        OR form_id IN (SELECT id FROM form WHERE module_id = ?)
        """,
        (module_id, module_id),
    ).fetchall()
    for row in rows:
        if row["id"] not in kept["tabs"]:
            tab.del_tx(conn, row["id"])

    rows = conn.execute(
        """
        SELECT field_id, form_id, context FROM open_form
        WHERE form_id IN (SELECT id FROM form WHERE module_id = ?)
        OR field_id IN (
          SELECT field.id FROM field JOIN form ON form.id = field.form_id
          WHERE form.module_id = ?
        )
        """,
        (module_id, module_id),
    ).fetchall()
    for row in rows:
        if row["field_id"] is not None:
            kind, owner_id = EntityKind.FIELD, row["field_id"]
        else:
            kind, owner_id = EntityKind.FORM, row["form_id"]
        if (kind, owner_id, row["context"]) not in kept["open_forms"]:
            open_form.set_tx(conn, kind, owner_id, None, row["context"])


def import_document_tx(conn, doc):
    doc = compatible.migrate("transfer", doc)

    module_id = module.set_tx(conn, doc["module"])
    result = {"module_id": module_id, "forms": 0, "tabs": 0, "articles": 0, "open_forms": 0}
    kept = {"forms": set(), "tabs": set(), "articles": set(), "open_forms": set()}

    for a in doc.get("articles") or []:
        conn.check_deadline()
        kept["articles"].add(article.set_tx(conn, module_id, a.get("id"), a.get("name"), a.get("captions")))
        result["articles"] += 1

    for frm in doc.get("forms") or []:
        conn.check_deadline()
        fields = frm.get("fields") if isinstance(frm.get("fields"), list) else []
        frm = {**frm, "module_id": module_id, "fields": [compatible.migrate("field", f) for f in fields]}
        kept["forms"].add(form.set_tx(conn, frm))
        result["forms"] += 1

    positions = {}
    for t in doc.get("tabs") or []:
        conn.check_deadline()
        kind = EntityKind.from_name(t.get("entity"))
        owner_id = normalize_id(t.get("entity_id"))
        # tabs without a stored position keep their order in the file
        fallback = positions.get((kind, owner_id), 0)
        position = t.get("position") if isinstance(t.get("position"), int) else fallback
        positions[(kind, owner_id)] = position + 1
        kept["tabs"].add(tab.set_tx(conn, kind, owner_id, position, t))
        result["tabs"] += 1

    for f in doc.get("open_forms") or []:
        conn.check_deadline()
        f = compatible.migrate("open_form", f)
        kind = EntityKind.from_name(f.get("entity"))
        owner_id = normalize_id(f.get("entity_id"))
        open_form.set_tx(conn, kind, owner_id, f, f.get("context"))
        kept["open_forms"].add((kind, owner_id, f.get("context")))
        result["open_forms"] += 1

    conn.check_deadline()
    _prune_module_tx(conn, module_id, kept)
    return result


def import_bundle(store, doc, timeout=None):
    validate_document(doc)
    with store.transaction(write=True, timeout=timeout) as conn:
        result = import_document_tx(conn, doc)
    logger.info("Imported module %s: %s", doc["module"].get("name"), result)
    return result


def import_from_files(store, file_paths, timeout=None):
    docs = [read_transfer_file(path) for path in file_paths]
    results = []
    with store.transaction(write=True, timeout=timeout) as conn:
        for doc in docs:
            results.append(import_document_tx(conn, doc))
    for doc, result in zip(docs, results):
        logger.info("Imported module %s: %s", doc["module"].get("name"), result)
    return results
