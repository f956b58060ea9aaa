# run_projections.py

import os
import argparse
from concurrent.futures import ProcessPoolExecutor, as_completed
from simdebug import *

from projection.loader import load_config
from projection.models import parse_valuation_date
from projection.monte_carlo import DEFAULT_ITERATIONS, SimulationKind, project_simulation
from projection.projector import default_valuation_date, project
from projection.report import print_projection, write_projection_csv

OUTPUT_DIR = "out"
DATA_DIR = "data"
PROFILE_DIR = os.path.join(DATA_DIR, "profiles")
SCENARIO_DIR = os.path.join(DATA_DIR, "scenarios")

LEVEL_MAP = {
    "error": ERROR,
    "warn": WARNING,
    "info": INFO,
    "vrbs": VERBOSE,
    "vvrbs": VVERBOSE,
    "vvvrbs": VVVERBOSE,
}


def _worker_run_one(args_tuple):
    """
    Top-level function so it's picklable for multiprocessing.
    args_tuple: (profile_path, scenario_path, options dict)
    """
    profile_path, scenario_path, options = args_tuple
    set_debug_level(options.get("debug_level", WARNING))
    try:
        run_one(profile_path, scenario_path, **{k: v for k, v in options.items() if k != "debug_level"})
        return (scenario_path, True, "")
    except Exception as e:
        return (scenario_path, False, str(e))


def run_one(profile_path, scenario_path, kind="standard", iterations=DEFAULT_ITERATIONS, seed=None,
            print_output=False, valuation_date=None, output_dir=OUTPUT_DIR):
    print(f"\n=== Running projection for: {profile_path} + {scenario_path} ===")

    loaded = load_config(profile_path, scenario_path)
    vd = valuation_date or loaded.valuation_date or default_valuation_date()

    base_name = os.path.splitext(os.path.basename(scenario_path or profile_path))[0]
    os.makedirs(output_dir, exist_ok=True)

    if get_debug_level() >= VVERBOSE:
        dump_events_to_csv(loaded.config, vd, os.path.join(output_dir, f"{base_name}_events.csv"))

    if kind == SimulationKind.STANDARD.value:
        result = project(loaded.config, vd)
    else:
        result = project_simulation(loaded.config, kind=kind, valuation_date=vd,
                                    iterations=iterations, seed=seed)

    write_projection_csv(result, filename_prefix=os.path.join(output_dir, base_name))

    if print_output:
        print_projection(result, title=f"{loaded.name}: {loaded.description} ({kind})")
    return result


def _resolve_path(arg, preferred_dir):
    """Accept absolute/existing paths; otherwise look in preferred_dir then data/."""
    if os.path.isabs(arg) or os.path.exists(arg):
        return arg
    cand = os.path.join(preferred_dir, arg)
    if os.path.exists(cand):
        return cand
    return os.path.join(DATA_DIR, arg)


def build_parser():
    parser = argparse.ArgumentParser(description="Run retirement projections for every scenario of a profile.")
    parser.add_argument("-u", "--user", required=True, help="Profile file (looked up in data/profiles/)")
    parser.add_argument("-f", "--file", action="append",
                        help="Process only specific scenario file(s). Repeatable: --file A.json --file B.json (also supports comma-separated).")
    parser.add_argument("-k", "--kind", choices=[k.value for k in SimulationKind], default="standard",
                        help="Projection kind")
    parser.add_argument("-n", "--iterations", type=int, default=DEFAULT_ITERATIONS, help="Monte Carlo iterations")
    parser.add_argument("-s", "--seed", type=int, default=None, help="Monte Carlo seed")
    parser.add_argument("-j", "--jobs", type=int, default=1, help="Number of parallel worker processes (1 = serial)")
    parser.add_argument("-p", "--print", action="store_true", help="Print the projection table to screen")
    parser.add_argument("-d", "--debug", choices=list(LEVEL_MAP), default="warn", help="Debug verbosity level")
    parser.add_argument("-o", "--output-dir", default=OUTPUT_DIR, help="Directory for CSV output")
    parser.add_argument("--valuation-date", help="Valuation month, YYYY-MM (default: profile, else this month)")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    set_debug_level(LEVEL_MAP[args.debug])

    valuation_date = parse_valuation_date(args.valuation_date) if args.valuation_date else None
    profile_path = _resolve_path(args.user, PROFILE_DIR)
    if not os.path.exists(profile_path):
        print(f"ERROR: profile not found: {args.user}")
        return 2

    if args.file:
        requested = []
        for item in args.file:
            requested.extend(p.strip() for p in item.split(",") if p.strip())

        scenario_paths = []
        missing = []
        for f in requested:
            cand = _resolve_path(f, SCENARIO_DIR)
            if os.path.exists(cand):
                scenario_paths.append(cand)
            else:
                missing.append(f)
        if missing:
            print(f"ERROR: One or more --file entries not found: {missing}")
            return 2
    elif os.path.isdir(SCENARIO_DIR):
        scenario_paths = sorted(
            os.path.join(SCENARIO_DIR, f) for f in os.listdir(SCENARIO_DIR) if f.endswith(".json"))
    else:
        scenario_paths = []

    if not scenario_paths:
        # the profile on its own is a valid projection
        scenario_paths = [None]

    options = {
        "kind": args.kind,
        "iterations": args.iterations,
        "seed": args.seed,
        "print_output": args.print,
        "valuation_date": valuation_date,
        "output_dir": args.output_dir,
    }

    failures = 0
    if args.jobs > 1 and len(scenario_paths) > 1:
        work = [(profile_path, sp, dict(options, debug_level=get_debug_level())) for sp in scenario_paths]
        print(f"Running {len(work)} scenario(s) with {args.jobs} parallel worker(s)...")
        with ProcessPoolExecutor(max_workers=args.jobs) as ex:
            futs = [ex.submit(_worker_run_one, w) for w in work]
            for fut in as_completed(futs):
                scen, ok, err = fut.result()
                label = os.path.basename(scen or profile_path)
                if ok:
                    print(f"[OK]   {label}")
                else:
                    failures += 1
                    print(f"[FAIL] {label}: {err}")
    else:
        for sp in scenario_paths:
            label = os.path.basename(sp or profile_path)
            try:
                run_one(profile_path, sp, **options)
                print(f"[OK]   {label}")
            except Exception as e:
                failures += 1
                print(f"[FAIL] {label}: {e}")

    if failures:
        print(f"\nDone with {failures} failure(s).")
        return 1
    print("\nDone. All scenarios succeeded.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
