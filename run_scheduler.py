"""
Demo entry point for the Docket Scheduling Engine.

Loads a calendar fixture (or generates one from a seed), replays the
booking requests through the engine, and prints a report of what was
granted, what collided, open slots and deadline status.
"""

import argparse
import json
import logging
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List, Optional

import pydantic

from docket_generators import BookingRequest, SampleDataGenerator
from docket_models import AvailabilityBlock, BookableResource, BookingStatus
from docket_scheduler import (
    ConflictError,
    InMemorySchedulingRepository,
    SchedulingEngine,
    SchedulingError,
    get_settings,
)

logger = logging.getLogger("docket.demo")

# --- CONFIGURATION ---
DEFAULT_FIXTURE = "docket_fixture.json"
DEFAULT_SEED = 42
# ---------------------


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler()]
    )


def save_fixture(data: Dict[str, Any], filename: str) -> None:
    """Write generated data so later runs replay exactly the same calendar."""
    serializable: Dict[str, Any] = {}
    for key, val in data.items():
        if isinstance(val, list):
            serializable[key] = [
                item.model_dump(mode='json') if isinstance(item, pydantic.BaseModel) else item
                for item in val
            ]
        else:
            serializable[key] = val

    with open(filename, 'w') as f:
        json.dump(serializable, f, indent=2, default=str)
    logger.info(f"Saved fixture to {filename}")


def load_fixture(filename: str) -> Optional[Dict[str, Any]]:
    """
    Load a JSON fixture and rebuild the pydantic records.
    Returns None when the file is missing or unusable.
    """
    try:
        with open(filename, 'r') as f:
            raw = json.load(f)

        logger.info(f"Loading fixture from {filename}...")

        data = {
            "start_date": date.fromisoformat(raw["start_date"]),
            "subjects": list(raw.get("subjects", [])),
            "resources": [BookableResource(**item) for item in raw.get("resources", [])],
            "blocks": [AvailabilityBlock(**item) for item in raw.get("blocks", [])],
            "requests": [BookingRequest(**item) for item in raw.get("requests", [])],
            "deadlines": list(raw.get("deadlines", [])),
        }
        logger.info(
            f"Fixture loaded: {len(data['subjects'])} subjects, {len(data['resources'])} resources, "
            f"{len(data['requests'])} requests"
        )
        return data

    except (FileNotFoundError, json.JSONDecodeError, KeyError, ValueError) as e:
        # pydantic.ValidationError is a ValueError
        logger.warning(f"Fixture {filename} not found or invalid ({e}). Falling back to the generator.")
        return None


def generate_data(seed: int) -> Dict[str, Any]:
    generator = SampleDataGenerator(seed=seed)
    data = generator.generate_all()
    data["start_date"] = generator.start_date
    return data


def build_engine(data: Dict[str, Any]) -> SchedulingEngine:
    """In-memory repository seeded with the fixture, clock frozen the evening before."""
    repository = InMemorySchedulingRepository(resources=data["resources"], blocks=data["blocks"])
    now = datetime.combine(data["start_date"] - timedelta(days=1), time(18, 0))
    return SchedulingEngine(repository, get_settings(), clock=lambda: now)


def run_demo(engine: SchedulingEngine, data: Dict[str, Any]) -> Dict[str, Any]:
    """Replay every request and collect the outcome."""
    report: Dict[str, Any] = {
        "granted": 0,
        "pending": 0,
        "conflicts": 0,
        "rejected": 0,
        "failures": [],
        "slots": {},
        "deadlines": [],
    }

    # 1. Booking requests
    for request in data["requests"]:
        try:
            booking = engine.request_booking(
                request.candidate,
                request.subject_ids,
                request.resource_id,
                owner=request.owner,
                purpose=request.purpose
            )
        except ConflictError as e:
            report["conflicts"] += 1
            report["failures"].append({"request": str(request.candidate), "reason": e.message,
                                       "conflicts": len(e.conflicts)})
            continue
        except SchedulingError as e:
            report["rejected"] += 1
            report["failures"].append({"request": str(request.candidate), "reason": e.message, "conflicts": 0})
            continue

        if booking.status == BookingStatus.PENDING:
            report["pending"] += 1
        else:
            report["granted"] += 1

    # 2. Open slots on the first day
    first_day = data["start_date"]
    for subject in data["subjects"]:
        report["slots"][subject] = len(engine.find_available_slots(subject, first_day))

    # 3. Deadlines
    for fields in data["deadlines"]:
        deadline = engine.create_deadline(**fields)
        report["deadlines"].append({
            "id": deadline.id,
            "title": deadline.title,
            "due_date": deadline.due_date.isoformat(),
            "status": engine.deadline_status(deadline.id).value,
        })

    return report


def print_report(report: Dict[str, Any]) -> None:
    print("\n" + "=" * 50)
    print("DOCKET SCHEDULING REPORT")
    print("=" * 50)
    print(f"Bookings confirmed:   {report['granted']}")
    print(f"Awaiting approval:    {report['pending']}")
    print(f"Refused (conflict):   {report['conflicts']}")
    print(f"Refused (invalid):    {report['rejected']}")

    if report["failures"]:
        print("\nCONFLICTS (first 10)")
        for fail in report["failures"][:10]:
            print(f"  x {fail['request']}: {fail['reason']} ({fail['conflicts']} conflicting)")

    print("\nOPEN 60-MIN SLOTS ON DAY ONE")
    for subject, count in sorted(report["slots"].items()):
        print(f"  {subject:<16} {count}")

    print("\nDEADLINES")
    for d in report["deadlines"]:
        print(f"  {d['due_date']}  [{d['status']:<8}] {d['title']}")


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Replay a law-firm calendar through the scheduling engine.")
    parser.add_argument("--fixture", default=DEFAULT_FIXTURE, help="JSON fixture to load (and save to)")
    parser.add_argument("--seed", type=int, default=DEFAULT_SEED, help="Generator seed when no fixture exists")
    parser.add_argument("--no-save", action="store_true", help="Do not write generated data to the fixture")
    args = parser.parse_args(argv)

    settings = get_settings()
    configure_logging(settings.log_level)
    logger.info("Starting Docket Scheduling demo...")

    # --- PHASE 1: DATA (fixture vs. generator) ---
    data = load_fixture(args.fixture)
    if data is None:
        data = generate_data(args.seed)
        if not args.no_save:
            save_fixture(data, args.fixture)

    # --- PHASE 2: SCHEDULING ---
    engine = build_engine(data)
    report = run_demo(engine, data)

    # --- PHASE 3: REPORTING ---
    print_report(report)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
