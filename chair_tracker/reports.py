"""Daily chair usage reports built from the visit history."""

import csv
import io
from collections import defaultdict
from datetime import date, datetime
from typing import Callable

from chair_tracker.clinic_ledger.database.clinic_store import (
    CHAIR_ID_PREFIX,
    ClinicStore,
    VisitHistory,
)
from chair_tracker.identity_validator import format_duration

REPORT_TITLE = "CHAIR USAGE REPORT"
NO_DATA_MESSAGE = "No usage records for today."
COLUMNS = [
    "Chair", "Patient", "ID", "Minutes", "Formatted Duration", "Start Time", "End Time",
]

REPORT_EXTENSIONS = {"text": "txt", "csv": "csv", "tsv": "xls"}


def report_filename(fmt: str, today: date) -> str:
    """File name offered when sharing a report, e.g. chair-report-2024-05-01.csv."""
    return f"chair-report-{today.isoformat()}.{REPORT_EXTENSIONS[fmt]}"


class ChairUsageReport:
    """
    Usage of each chair over the current day.

    A visit counts as today's when its start timestamp begins with today's
    ISO date, so the store and the report should share the same clock.
    """

    def __init__(self, store: ClinicStore, clock: Callable[[], datetime] | None = None):
        self.store = store
        self.clock = clock or store.clock

    def today(self) -> date:
        return self.clock().date()

    def todays_visits(self) -> list[VisitHistory]:
        prefix = self.today().isoformat()
        return [v for v in self.store.visit_history if v.start_time.startswith(prefix)]

    def to_text(self) -> str:
        generated = self._display_date()
        visits = self.todays_visits()
        if not visits:
            return f"{REPORT_TITLE}\nGenerated on: {generated}\n\n{NO_DATA_MESSAGE}"

        by_chair = defaultdict(list)
        for visit in visits:
            by_chair[visit.chair_id].append(visit)

        total_time = sum(v.duration for v in visits)
        total_patients = len({v.patient_id for v in visits})

        lines = [
            REPORT_TITLE,
            f"Generated on: {generated}",
            "Period: Current day",
            "",
            "SUMMARY:",
            f"- Chairs used: {len(by_chair)}",
            f"- Total usage time: {format_duration(total_time)}",
            f"- Patients attended: {total_patients}",
            "",
            "DETAIL BY CHAIR:",
            "",
        ]

        # Plain string order: silla-10 sorts before silla-2
        for chair_id in sorted(by_chair):
            chair_visits = by_chair[chair_id]
            lines.append(f"CHAIR {self._chair_number(chair_id)}:")
            lines.append(
                f"  • Total usage time: {format_duration(sum(v.duration for v in chair_visits))}"
            )
            lines.append(f"  • Number of uses: {len(chair_visits)}")
            for visit in chair_visits:
                name, id_value = self._patient_labels(visit, missing_name="Unknown patient")
                lines.append(f"  • {name} ({id_value}) - {format_duration(visit.duration)}")
            lines.append("")

        lines.append("")
        lines.append("Report generated by Chair Tracker")
        return "\n".join(lines)

    def to_csv(self) -> str:
        """One quoted row per visit under a plain header line."""
        output = io.StringIO()
        output.write(",".join(COLUMNS) + "\n")

        writer = csv.writer(output, quoting=csv.QUOTE_ALL, lineterminator="\n")
        for visit in self.todays_visits():
            writer.writerow(self._row(visit))
        return output.getvalue()

    def to_tsv(self) -> str:
        """Tab-separated rows under a title line, for spreadsheet import."""
        title = f"{REPORT_TITLE} - {self._display_date()}"
        visits = self.todays_visits()
        if not visits:
            return f"{title}\n\n{NO_DATA_MESSAGE}"

        lines = [title, "", "\t".join(COLUMNS)]
        for visit in visits:
            lines.append("\t".join(str(value) for value in self._row(visit)))
        return "\n".join(lines) + "\n"

    def render(self, fmt: str) -> str:
        renderers = {"text": self.to_text, "csv": self.to_csv, "tsv": self.to_tsv}
        if fmt not in renderers:
            raise ValueError(f"Unknown report format: {fmt}")
        return renderers[fmt]()

    def _display_date(self) -> str:
        return self.today().strftime("%d-%m-%Y")

    def _row(self, visit: VisitHistory) -> list:
        name, id_value = self._patient_labels(visit, missing_name="N/A")
        return [
            self._chair_number(visit.chair_id),
            name,
            id_value,
            visit.duration,
            format_duration(visit.duration),
            self._clock_time(visit.start_time),
            self._clock_time(visit.end_time),
        ]

    def _patient_labels(self, visit: VisitHistory, missing_name: str) -> tuple[str, str]:
        patient = self.store.get_patient(visit.patient_id)
        if not patient:
            return missing_name, "N/A"
        return patient.name, patient.id_value

    def _chair_number(self, chair_id: str) -> str:
        return chair_id.removeprefix(CHAIR_ID_PREFIX)

    def _clock_time(self, timestamp: str) -> str:
        return datetime.fromisoformat(timestamp).strftime("%H:%M:%S")
