"""Tests for the daily chair usage reports."""

import json
from datetime import date

import pytest

from chair_tracker.clinic_ledger.database import ClinicStore
from chair_tracker.reports import COLUMNS, ChairUsageReport, report_filename

HEADER = "Chair,Patient,ID,Minutes,Formatted Duration,Start Time,End Time\n"


@pytest.fixture
def busy_store(store, patient, patient_data, clock):
    """Two sessions on silla-2 and one on silla-10, all today."""
    lucas = store.add_patient(
        name="Lucas Silva", birth_date="2000-01-30", id_kind="passport", id_value="BR4471920",
    )
    for _ in range(4):
        store.add_chair()

    store.assign_patient_to_chair(patient.id, "silla-2")
    clock.advance(minutes=45)
    store.release_chair("silla-2")

    store.assign_patient_to_chair(lucas.id, "silla-10")
    clock.advance(minutes=90)
    store.release_chair("silla-10")

    store.assign_patient_to_chair(patient.id, "silla-2")
    clock.advance(minutes=20)
    store.release_chair("silla-2")
    return store


class TestTextReport:
    """Tests for the plain text report."""

    def test_no_visits(self, store):
        report = ChairUsageReport(store).to_text()
        assert report == (
            "CHAIR USAGE REPORT\nGenerated on: 14-05-2024\n\nNo usage records for today."
        )

    def test_summary(self, busy_store):
        report = ChairUsageReport(busy_store).to_text()
        assert "Generated on: 14-05-2024" in report
        assert "- Chairs used: 2" in report
        assert "- Total usage time: 2h 35m" in report
        assert "- Patients attended: 2" in report

    def test_chair_breakdown(self, busy_store):
        report = ChairUsageReport(busy_store).to_text()
        assert "CHAIR 2:\n  • Total usage time: 1h 5m\n  • Number of uses: 2\n" in report
        assert "  • Camila Rojas (12.345.678-5) - 45m" in report
        assert "  • Camila Rojas (12.345.678-5) - 20m" in report
        assert "CHAIR 10:\n  • Total usage time: 1h 30m\n  • Number of uses: 1\n" in report
        assert "  • Lucas Silva (BR4471920) - 1h 30m" in report

    def test_chairs_sorted_as_strings(self, busy_store):
        report = ChairUsageReport(busy_store).to_text()
        assert report.index("CHAIR 10:") < report.index("CHAIR 2:")

    def test_missing_patient(self, kv_store, clock):
        kv_store.set("@test_visit_history", json.dumps([
            {"id": "v1", "patient_id": "gone", "chair_id": "silla-1",
             "start_time": "2024-05-14T08:00:00", "end_time": "2024-05-14T08:25:00", "duration": 25},
        ]))
        clinic = ClinicStore(kv_store, clock=clock, key_prefix="@test_")
        clinic.load_data()

        report = ChairUsageReport(clinic).to_text()
        assert "  • Unknown patient (N/A) - 25m" in report


class TestCsvReport:
    """Tests for the CSV export."""

    def test_empty_history_is_header_only(self, store):
        assert ChairUsageReport(store).to_csv() == HEADER

    def test_rows(self, busy_store):
        lines = ChairUsageReport(busy_store).to_csv().splitlines()
        assert lines[0] + "\n" == HEADER
        assert len(lines) == 4
        assert lines[1] == '"2","Camila Rojas","12.345.678-5","45","45m","09:00:00","09:45:00"'
        assert lines[2] == '"10","Lucas Silva","BR4471920","90","1h 30m","09:45:00","11:15:00"'

    def test_other_days_are_excluded(self, busy_store, clock):
        clock.advance(days=1)
        assert ChairUsageReport(busy_store).to_csv() == HEADER

    def test_quotes_in_names_are_escaped(self, store, clock):
        patient = store.add_patient(
            name='Ana "Anita" Pérez', birth_date="1990-01-01",
            id_kind="passport", id_value="XY123",
        )
        store.assign_patient_to_chair(patient.id, "silla-1")
        clock.advance(minutes=5)
        store.release_chair("silla-1")

        row = ChairUsageReport(store).to_csv().splitlines()[1]
        assert row.startswith('"1","Ana ""Anita"" Pérez","XY123"')


class TestTsvReport:
    """Tests for the tab-separated spreadsheet export."""

    def test_no_visits(self, store):
        assert ChairUsageReport(store).to_tsv() == (
            "CHAIR USAGE REPORT - 14-05-2024\n\nNo usage records for today."
        )

    def test_rows(self, busy_store):
        lines = ChairUsageReport(busy_store).to_tsv().splitlines()
        assert lines[0] == "CHAIR USAGE REPORT - 14-05-2024"
        assert lines[1] == ""
        assert lines[2].split("\t") == COLUMNS
        assert lines[3].split("\t") == [
            "2", "Camila Rojas", "12.345.678-5", "45", "45m", "09:00:00", "09:45:00",
        ]
        assert len(lines) == 6


class TestRender:
    def test_dispatch(self, store):
        report = ChairUsageReport(store)
        assert report.render("csv") == HEADER
        assert report.render("text").startswith("CHAIR USAGE REPORT")

    def test_unknown_format(self, store):
        with pytest.raises(ValueError):
            ChairUsageReport(store).render("pdf")

    def test_filenames(self):
        today = date(2024, 5, 14)
        assert report_filename("text", today) == "chair-report-2024-05-14.txt"
        assert report_filename("csv", today) == "chair-report-2024-05-14.csv"
        assert report_filename("tsv", today) == "chair-report-2024-05-14.xls"
