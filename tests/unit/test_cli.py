"""Tests for medbook CLI commands."""

from unittest.mock import patch

import pytest

from medbook.cli import create_parser, main
from medbook.models.errors import SlotConflict
from medbook.models.schemas import Role
from medbook.storage.database import MedbookDB


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "cli.db")


@pytest.fixture
def seeded(db_path):
    """File database with one provider and one patient."""
    db = MedbookDB(db_path)
    db.init_schema()
    doc_user = db.create_user("doc@test", "Dr. Sarah Smith", role=Role.DOCTOR, specialty="Cardiology")
    pat_user = db.create_user("pat@test", "Alice Patient")
    provider = db.get_provider_by_user(doc_user.id)
    patient = db.get_patient_by_user(pat_user.id)
    db.upsert_availability(
        provider.id, [{"day_of_week": "Monday", "start_time": "09:00", "end_time": "10:00"}]
    )
    db.close()
    return provider.id, patient.id


def run(argv: list[str]) -> None:
    args = create_parser().parse_args(argv)
    args.func(args)


class TestCreateParser:
    """Tests for argument parsing."""

    def test_book_arguments(self):
        args = create_parser().parse_args(
            ["--db", "x.db", "book", "doc_1", "pat_1", "2024-03-04", "09:30", "-r", "Checkup"]
        )

        assert args.db == "x.db"
        assert args.provider_id == "doc_1"
        assert args.time == "09:30"
        assert args.reason == "Checkup"

    def test_set_schedule_inactive_flag(self):
        args = create_parser().parse_args(
            ["set-schedule", "doc_1", "Sunday", "09:00", "17:00", "--inactive"]
        )
        assert args.inactive is True

    def test_serve_defaults(self):
        args = create_parser().parse_args(["serve"])
        assert args.port == 8000
        assert args.reload is False

    def test_add_provider_requires_name(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args(["add-provider", "--email", "a@b"])


class TestCommands:
    """Tests for cmd_* functions against a file database."""

    def test_init_db(self, db_path, capsys):
        run(["--db", db_path, "init-db"])
        assert "Database ready" in capsys.readouterr().out

    def test_add_provider(self, db_path, capsys):
        run(["--db", db_path, "add-provider", "--name", "Dr. Lee", "--email", "lee@test",
             "--specialty", "Dermatology"])

        out = capsys.readouterr().out
        assert "Dr. Lee (Dermatology)" in out

    def test_set_schedule(self, db_path, seeded, capsys):
        provider_id, _ = seeded
        run(["--db", db_path, "set-schedule", provider_id, "tue", "13:00", "15:00"])

        assert "Tuesday: 13:00-15:00 (active)" in capsys.readouterr().out

    def test_set_specialty(self, db_path, seeded, capsys):
        provider_id, _ = seeded
        run(["--db", db_path, "set-specialty", provider_id, "Pediatrics"])

        assert "Dr. Sarah Smith is now listed under Pediatrics" in capsys.readouterr().out
        db = MedbookDB(db_path)
        assert db.get_provider(provider_id).specialty == "Pediatrics"
        db.close()

    def test_set_specialty_unknown_provider(self, db_path, seeded, capsys):
        argv = ["medbook", "--db", db_path, "set-specialty", "doc_missing", "Pediatrics"]

        with patch("sys.argv", argv), pytest.raises(SystemExit) as exc_info:
            main()

        assert exc_info.value.code == 1
        assert "Unknown provider" in capsys.readouterr().out

    def test_availability(self, db_path, seeded, capsys):
        provider_id, _ = seeded
        run(["--db", db_path, "availability", provider_id, "2024-03-04", "--time", "11:00"])

        out = capsys.readouterr().out
        assert "✓ 09:00" in out
        assert "✓ 09:30" in out
        assert "time_out_of_bounds" in out

    def test_book_then_conflict(self, db_path, seeded, capsys):
        provider_id, patient_id = seeded
        run(["--db", db_path, "book", provider_id, patient_id, "2024-03-04", "09:30"])
        assert "Booked Dr. Sarah Smith" in capsys.readouterr().out

        with pytest.raises(SlotConflict):
            run(["--db", db_path, "book", provider_id, patient_id, "2024-03-04", "09:30"])


class TestMain:
    def test_invalid_time_exits(self, db_path, seeded, capsys):
        provider_id, patient_id = seeded
        argv = ["medbook", "--db", db_path, "book", provider_id, patient_id, "2024-03-04", "noon-ish"]

        with patch("sys.argv", argv), pytest.raises(SystemExit) as exc_info:
            main()

        assert exc_info.value.code == 1
        assert "validation_error" in capsys.readouterr().out

    def test_conflict_exits_with_error(self, db_path, seeded, capsys):
        provider_id, patient_id = seeded
        argv = ["medbook", "--db", db_path, "book", provider_id, patient_id, "2024-03-04", "09:00"]
        run(argv[1:])
        capsys.readouterr()

        with patch("sys.argv", argv), pytest.raises(SystemExit) as exc_info:
            main()

        assert exc_info.value.code == 1
        assert "slot_conflict" in capsys.readouterr().out

    def test_no_command_prints_help(self, capsys):
        with patch("sys.argv", ["medbook"]):
            main()
        assert "usage" in capsys.readouterr().out.lower()
