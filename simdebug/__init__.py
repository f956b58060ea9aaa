# simdebug/__init__.py
from .debug import (
    debug,
    set_debug_level,
    get_debug_level,
    dump_data,
    dump_events_to_csv,

    ERROR, WARNING, INFO,
    VERBOSE, VVERBOSE, VVVERBOSE
)
__all__ = [
    "debug",
    "set_debug_level",
    "get_debug_level",
    "dump_data",
    "dump_events_to_csv",

    "ERROR", "WARNING", "INFO",
    "VERBOSE", "VVERBOSE", "VVVERBOSE"
]
