"""MedBook CLI - manage providers and bookings from the command line.

Usage:
    medbook init-db
    medbook add-provider --name "Dr. Sarah Smith" --email sarah@clinic.test --specialty Cardiology
    medbook set-schedule doc_123 Monday 09:00 17:00
    medbook set-specialty doc_123 Pediatrics
    medbook availability doc_123 2024-03-04 --time 14:00
    medbook book doc_123 pat_456 2024-03-04 14:00 --reason "Checkup"
    medbook serve --port 8000
"""

import argparse
import logging
import os
import sys
from argparse import Namespace

from medbook.models.errors import BookingError
from medbook.models.schemas import BookingChannel, Role
from medbook.scheduling.conflicts import check_availability
from medbook.scheduling.reservations import commit_reservation
from medbook.storage.database import MedbookDB

logger = logging.getLogger(__name__)


def _open_db(args: Namespace) -> MedbookDB:
    db = MedbookDB(args.db) if args.db else MedbookDB()
    db.init_schema()
    return db


def cmd_init_db(args: Namespace) -> None:
    """Create the database schema."""
    db = _open_db(args)
    print(f"✅ Database ready: {db.db_path}")
    db.close()


def cmd_add_provider(args: Namespace) -> None:
    """Register a doctor identity and its provider row."""
    db = _open_db(args)
    user = db.create_user(
        email=args.email, full_name=args.name, role=Role.DOCTOR, specialty=args.specialty
    )
    provider = db.get_provider_by_user(user.id)
    print(f"✅ Provider {provider.name} ({provider.specialty}): {provider.id}")
    db.close()


def cmd_set_specialty(args: Namespace) -> None:
    """Change a provider's specialty label."""
    db = _open_db(args)
    provider = db.update_provider_specialty(args.provider_id, args.specialty)
    print(f"✅ {provider.name} is now listed under {provider.specialty}")
    db.close()


def cmd_set_schedule(args: Namespace) -> None:
    """Upsert one weekday of a provider's schedule."""
    db = _open_db(args)
    rows = db.upsert_availability(
        args.provider_id,
        [
            {
                "day_of_week": args.day,
                "start_time": args.start,
                "end_time": args.end,
                "is_active": not args.inactive,
            }
        ],
    )
    row = rows[0]
    state = "active" if row.is_active else "inactive"
    print(f"🗓️ {row.day_of_week}: {row.start_time}-{row.end_time} ({state})")
    db.close()


def cmd_availability(args: Namespace) -> None:
    """Show slots for a provider on a date."""
    db = _open_db(args)
    result = check_availability(db, args.provider_id, args.date, args.time)

    print(f"\n📅 {result.day} {result.date.isoformat()}")
    if result.schedule:
        print(f"   Hours: {result.schedule.start}-{result.schedule.end}")
    for slot in result.slots:
        mark = "✓" if slot.available else "✗"
        print(f"   {mark} {slot.time}")
    if result.reason:
        print(f"\n   {result.reason.value}: {result.message}")
    if result.alternatives:
        print(f"   Alternatives: {', '.join(result.alternatives)}")
    db.close()


def cmd_book(args: Namespace) -> None:
    """Commit a reservation."""
    db = _open_db(args)
    booked = commit_reservation(
        db,
        args.provider_id,
        args.patient_id,
        args.date,
        args.time,
        reason=args.reason,
        channel=BookingChannel.MANUAL,
    )
    print(f"✅ Booked {booked.provider_name} on {booked.appointment_date} at {booked.appointment_time}")
    print(f"   Booking ID: {booked.id} ({booked.status.value})")
    db.close()


def cmd_serve(args: Namespace) -> None:
    """Run the HTTP API."""
    import uvicorn

    if args.db:
        os.environ["MEDBOOK_DB_PATH"] = args.db
    uvicorn.run("medbook.main:app", host=args.host, port=args.port, reload=args.reload)


def create_parser() -> argparse.ArgumentParser:
    """Create and configure the CLI argument parser.

    Returns:
        Configured ArgumentParser for testing and main().
    """
    parser = argparse.ArgumentParser(
        description="MedBook - appointment availability and booking",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--db", help="SQLite database path (default: MEDBOOK_DB_PATH)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    init_parser = subparsers.add_parser("init-db", help="Create the database schema")
    init_parser.set_defaults(func=cmd_init_db)

    provider_parser = subparsers.add_parser("add-provider", help="Register a provider")
    provider_parser.add_argument("--name", required=True, help="Display name")
    provider_parser.add_argument("--email", required=True, help="Login email")
    provider_parser.add_argument("--specialty", default=None, help="Specialty label")
    provider_parser.set_defaults(func=cmd_add_provider)

    schedule_parser = subparsers.add_parser(
        "set-schedule", help="Set a provider's hours for one weekday"
    )
    schedule_parser.add_argument("provider_id", help="Provider ID")
    schedule_parser.add_argument("day", help="Day of week, e.g. Monday")
    schedule_parser.add_argument("start", help="Start time (HH:MM)")
    schedule_parser.add_argument("end", help="End time (HH:MM)")
    schedule_parser.add_argument(
        "--inactive", action="store_true", help="Mark the day as not working"
    )
    schedule_parser.set_defaults(func=cmd_set_schedule)

    specialty_parser = subparsers.add_parser(
        "set-specialty", help="Change a provider's specialty"
    )
    specialty_parser.add_argument("provider_id", help="Provider ID")
    specialty_parser.add_argument("specialty", help="New specialty label")
    specialty_parser.set_defaults(func=cmd_set_specialty)

    avail_parser = subparsers.add_parser("availability", help="Show open slots")
    avail_parser.add_argument("provider_id", help="Provider ID")
    avail_parser.add_argument("date", help="Date (YYYY-MM-DD)")
    avail_parser.add_argument("--time", "-t", default=None, help="Time to classify")
    avail_parser.set_defaults(func=cmd_availability)

    book_parser = subparsers.add_parser("book", help="Book a slot")
    book_parser.add_argument("provider_id", help="Provider ID")
    book_parser.add_argument("patient_id", help="Patient ID")
    book_parser.add_argument("date", help="Date (YYYY-MM-DD)")
    book_parser.add_argument("time", help="Time (HH:MM)")
    book_parser.add_argument("--reason", "-r", default=None, help="Reason for visit")
    book_parser.set_defaults(func=cmd_book)

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", default="0.0.0.0")
    serve_parser.add_argument("--port", "-p", type=int, default=8000)
    serve_parser.add_argument("--reload", action="store_true")
    serve_parser.set_defaults(func=cmd_serve)

    return parser


def main():
    """Main CLI entry point."""
    parser = create_parser()
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(message)s",
    )

    if not args.command:
        parser.print_help()
        return

    try:
        args.func(args)
    except BookingError as e:
        print(f"❌ {e.error_type.value}: {e.message}")
        sys.exit(1)
    except ValueError as e:
        print(f"❌ {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
