import csv
import dataclasses
import inspect
import pprint
import sys

# Debug level constants
ERROR      = 0
WARNING    = 1
INFO       = 2
VERBOSE    = 3
VVERBOSE   = 4
VVVERBOSE  = 5

_LEVEL_NAMES = {
    ERROR:     "ERROR    ",
    WARNING:   "WARNING  ",
    INFO:      "INFO     ",
    VERBOSE:   "VERBOSE  ",
    VVERBOSE:  "VVERBOSE ",
    VVVERBOSE: "VVVERBOSE"
}

# Current threshold (only messages <= this level will print).
# The engine is used as a library too, so stay quiet unless asked.
debug_level = WARNING

def set_debug_level(level):
    """Set the global debug_level. Accepts one of ERROR…VVVERBOSE."""
    global debug_level
    debug_level = level

def get_debug_level():
    return debug_level

def _caller():
    """(function name, line number) of the code that called into this module."""
    frame = inspect.currentframe().f_back.f_back
    return frame.f_code.co_name, frame.f_lineno

def debug(level, msg, *args, **kwargs):
    """
    Print `msg.format(*args, **kwargs)` when `level` is within the threshold,
    prefixed with the level and the calling function. ERROR and WARNING go
    to stderr so a batch run's stdout stays a clean report.
    """
    if level > debug_level:
        return

    func_name, line_no = _caller()
    try:
        text = msg.format(*args, **kwargs)
    except (IndexError, KeyError, ValueError):
        text = msg

    stream = sys.stderr if level <= WARNING else sys.stdout
    print(f"[{_LEVEL_NAMES.get(level, str(level))}] {func_name} [{line_no}]: {text}", file=stream)

def dump_data(data, label=None):
    """Pretty-print a loaded profile, a Config or a summary at VVERBOSE and above.

    Dataclass instances are expanded to plain dicts first.
    """
    if debug_level < VVERBOSE:
        return

    func_name, line_no = _caller()
    if dataclasses.is_dataclass(data) and not isinstance(data, type):
        data = dataclasses.asdict(data)
    header = f"DUMP {func_name} [{line_no}]" + (f" {label}" if label else "")
    print(f"{header}:\n{pprint.pformat(data, width=120, sort_dicts=False)}")

def dump_events_to_csv(config, valuation_date, csv_path):
    """
    Write one row per life event with its resolved month window relative to
    valuation_date. Disabled events are listed too (enabled=False) so the
    file shows everything the caller declared.
    """
    # local import: projection imports simdebug
    from projection.timeline import month_offset, monthly_delta

    debug(INFO, "dumping {} events to {}", len(config.life_events), csv_path)

    header = ["id", "name", "type", "enabled", "source",
              "start_date", "end_date", "start_month", "end_month",
              "amount", "monthly_delta"]

    with open(csv_path, "w", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(header)

        for ev in config.life_events:
            start_m = month_offset(ev.start_date, valuation_date)
            end_m = month_offset(ev.end_date, valuation_date) if ev.end_date else ""
            writer.writerow([
                ev.id,
                ev.name,
                ev.type.value,
                ev.enabled,
                ev.source,
                str(ev.start_date),
                str(ev.end_date) if ev.end_date else "",
                start_m,
                end_m,
                ev.amount,
                monthly_delta(ev) if ev.is_recurring else "",
            ])

    debug(VVERBOSE, "Dumped {} events to {}", len(config.life_events), csv_path)
