"""Compatibility fixes for entity values written by older platform versions.

Every fix targets one historical schema change and is registered for the entity
kind it touches and the version that introduced the change. Fixes take the value
as decoded from a transfer file and return a value in the current shape: they
never mutate their input, never raise, and return values already in the current
shape unchanged. ``migrate`` runs all fixes of a kind, oldest change first.
"""

import copy
import logging
import uuid

from .constants import DEFAULT_CALENDAR_DAYS, DEFAULT_RELATION_INDEX_APPLY, DEFAULT_SETTINGS

logger = logging.getLogger("SchemaTransfer")

_IMPORT_FIXES = {}
_EXPORT_FIXES = {}


def _version_key(version):
    return tuple(int(part) for part in version.split("."))


def _register(registry, kind, version):
    def decorator(func):
        steps = registry.setdefault(kind, [])
        steps.append((_version_key(version), func))
        # stable sort keeps registration order for fixes of the same version
        steps.sort(key=lambda step: step[0])
        func.kind = kind
        func.version = version
        return func

    return decorator


def import_fix(kind, before):
    """Register a fix for values exported by versions older than ``before``."""
    return _register(_IMPORT_FIXES, kind, before)


def export_fix(kind, since):
    """Register a fixup applied on export, needed since version ``since``."""
    return _register(_EXPORT_FIXES, kind, since)


def pipeline(kind):
    return [func for _, func in _IMPORT_FIXES.get(kind, ())]


def export_pipeline(kind):
    return [func for _, func in _EXPORT_FIXES.get(kind, ())]


def migrate(kind, value):
    for func in pipeline(kind):
        fixed = func(value)
        if fixed is not value:
            logger.debug("Applied compatibility fix %s to %s", func.__name__, kind)
        value = fixed
    return value


def prepare_export(kind, value):
    for func in export_pipeline(kind):
        value = func(value)
    return value


def _is_int(value):
    return isinstance(value, int) and not isinstance(value, bool)


# ── whole transfer document ──


@import_fix("transfer", before="3.2")
def fix_help_captions(doc):
    """Help texts were captions on modules and forms before help articles existed."""
    if not isinstance(doc, dict):
        return doc
    module = doc.get("module")
    forms = doc.get("forms") if isinstance(doc.get("forms"), list) else []

    def _has_legacy(entity, content):
        return isinstance(entity, dict) and isinstance(entity.get("captions"), dict) and content in entity["captions"]

    if not _has_legacy(module, "moduleHelp") and not any(_has_legacy(f, "formHelp") for f in forms):
        return doc

    doc = copy.deepcopy(doc)
    module = doc.get("module")
    module_id = module.get("id") if isinstance(module, dict) else None
    if not isinstance(doc.get("articles"), list):
        doc["articles"] = []
    articles = doc["articles"]

    def _move(entity, content, kind):
        if not _has_legacy(entity, content):
            return
        help_text = entity["captions"].pop(content)
        if not isinstance(help_text, dict) or not help_text:
            return
        if entity.get("id"):
            article_id = str(uuid.uuid5(uuid.NAMESPACE_OID, f"{kind}:{entity['id']}:help"))
        else:
            article_id = str(uuid.uuid4())
        if not any(isinstance(a, dict) and a.get("id") == article_id for a in articles):
            articles.append(
                {
                    "id": article_id,
                    "module_id": module_id,
                    "name": f"help_{entity.get('name') or kind}",
                    "captions": {"articleBody": help_text},
                }
            )
        ids = list(entity.get("article_ids_help") or [])
        if article_id not in ids:
            ids.append(article_id)
        entity["article_ids_help"] = ids

    _move(module, "moduleHelp", "module")
    for form in doc.get("forms") if isinstance(doc.get("forms"), list) else []:
        _move(form, "formHelp", "form")
    return doc


# ── open-form bindings ──


@import_fix("open_form", before="3.4")
def fix_open_form_pop_up_type(f):
    """The boolean pop-up option became a pop-up type ('float' or 'inline')."""
    if not isinstance(f, dict) or "pop_up" not in f:
        return f
    f = dict(f)
    pop_up = f.pop("pop_up")
    if f.get("pop_up_type") is None:
        f["pop_up_type"] = "float" if pop_up else None
    return f


@import_fix("open_form", before="3.5")
def fix_open_form_relation_index_apply(f):
    """relation_index was renamed to relation_index_apply; relation_index_open was added."""
    if not isinstance(f, dict):
        return f
    current = "relation_index" not in f and _is_int(f.get("relation_index_apply")) and _is_int(f.get("relation_index_open"))
    if current:
        return f
    f = dict(f)
    legacy = f.pop("relation_index", None)
    if not _is_int(f.get("relation_index_apply")):
        f["relation_index_apply"] = legacy if _is_int(legacy) else DEFAULT_RELATION_INDEX_APPLY
        if f["relation_index_apply"] == DEFAULT_RELATION_INDEX_APPLY:
            f["attribute_id_apply"] = None
    if not _is_int(f.get("relation_index_open")):
        f["relation_index_open"] = 0
    return f


@export_fix("open_form", since="3.5")
def mirror_open_form_relation_index(f):
    """Keep the pre-3.5 relation_index readable for installations that still expect it."""
    if not isinstance(f, dict) or not _is_int(f.get("relation_index_apply")):
        return f
    if f.get("relation_index") == f["relation_index_apply"]:
        return f
    f = dict(f)
    f["relation_index"] = f["relation_index_apply"]
    return f


# ── fields ──


@import_fix("field", before="3.5")
def fix_calendar_default_view(f):
    """Calendar fields gained a number of days to show."""
    if not isinstance(f, dict) or f.get("content") != "calendar":
        return f
    days = f.get("days")
    if _is_int(days) and days > 0:
        return f
    f = dict(f)
    f["days"] = DEFAULT_CALENDAR_DAYS
    return f


@import_fix("field", before="3.10")
def fix_nil_field_flags(f):
    if not isinstance(f, dict) or isinstance(f.get("flags"), list):
        return f
    f = dict(f)
    f["flags"] = []
    return f


@import_fix("field", before="3.11")
def fix_field_options_to_flags(f):
    """Single boolean field options moved into the field flags."""
    if not isinstance(f, dict) or ("clipboard" not in f and "category" not in f):
        return f
    f = dict(f)
    flags = [flag for flag in f.get("flags") or [] if isinstance(flag, str)] if isinstance(f.get("flags"), list) else []
    clipboard = f.pop("clipboard", False)
    category = f.pop("category", False)
    if clipboard is True and "clipboard" not in flags:
        flags.append("clipboard")
    # only relationship data fields know categories
    if category is True and f.get("content") == "data" and isinstance(f.get("outside_in"), bool) and "relCategory" not in flags:
        flags.append("relCategory")
    f["flags"] = flags
    return f


# ── login settings ──


@import_fix("settings", before="3.9")
def fix_settings_defaults(s):
    """Display options added over time get their defaults when missing."""
    if not isinstance(s, dict):
        return dict(DEFAULT_SETTINGS)
    missing = [key for key in DEFAULT_SETTINGS if key not in s]
    if not missing:
        return s
    s = dict(s)
    for key in missing:
        s[key] = DEFAULT_SETTINGS[key]
    return s
