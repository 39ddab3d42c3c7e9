APP_NAME = "SchemaTransfer"

# platform schema version written into exported files
SCHEMA_VERSION = "3.11"

# layout version of the transfer file itself
TRANSFER_FILE_VERSION = "1.0"

OPEN_FORM_CONTEXTS = (None, "bulk")
OPEN_FORM_POP_UP_TYPES = (None, "float", "inline")

FIELD_CONTENTS = ("button", "calendar", "container", "data", "header", "list", "tabs")

# relation index applied by open-form bindings that do not apply a record relationship
DEFAULT_RELATION_INDEX_APPLY = -1
DEFAULT_CALENDAR_DAYS = 42

DEFAULT_SETTINGS = {
    "language_code": "en_us",
    "date_format": "Y-m-d",
    "sunday_first_dow": True,
    "font_size": 100,
    "borders_squared": False,
    "header_captions": True,
    "spacing": 3,
    "dark": False,
    "pattern": "bubbles",
    "font_family": "helvetica",
    "tab_remember": True,
    "list_colored": False,
    "number_sep_decimal": ".",
    "number_sep_thousand": ",",
    "bool_as_icon": True,
    "shadows_inputs": True,
}
