"""Front-desk console for tracking patients and treatment chairs."""

import logging
import shlex
import sys
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from chair_tracker import config
from chair_tracker.clinic_ledger.database import ClinicStore, SqliteKeyValueStore
from chair_tracker.clinic_ledger.database.clinic_store import CHAIR_ID_PREFIX, ChairState, Patient
from chair_tracker.errors import ClinicError, NotFoundError, ValidationError
from chair_tracker.identity_validator import calculate_age, format_duration
from chair_tracker.patient_form import parse_patient_form
from chair_tracker.reports import ChairUsageReport, report_filename

logger = logging.getLogger(__name__)
console = Console()

HELP_TEXT = """[bold]Commands[/bold]
  chairs                               list chairs and who is sitting in them
  patients [query] [--assigned|--unassigned]
  add-patient name=.. birth_date=YYYY-MM-DD id_value=.. [id_kind=passport] [phone=..] [email=..] [medical_notes=..]
  update-patient <patient> field=value ...
  assign <patient> <chair>             seat a patient (patient by id or visit number)
  release <chair>                      close the session on a chair
  add-chair | delete-chair <chair>
  history <patient>                    past sessions, newest first
  stats                                clinic summary
  report [text|csv|tsv] [dir]          today's chair usage, saved to dir when given
  export <path> | import <path> | clear
  quit | exit"""


def resolve_patient(store: ClinicStore, ref: str) -> Patient:
    """Find a patient by id, or by visit number when given digits (optionally #3)."""
    ref = ref.lstrip("#")
    if ref.isdigit():
        patient = next((p for p in store.patients if p.visit_number == int(ref)), None)
    else:
        patient = store.get_patient(ref)
    if not patient:
        raise NotFoundError(f"Patient {ref} not found")
    return patient


def resolve_chair_id(ref: str) -> str:
    """Accept either a chair id or its bare number."""
    return f"{CHAIR_ID_PREFIX}{ref}" if ref.isdigit() else ref


def parse_fields(args: list[str]) -> dict:
    """Turn key=value arguments into a dict."""
    fields = {}
    for arg in args:
        key, sep, value = arg.partition("=")
        if not sep:
            raise ValueError(f"Expected field=value, got {arg!r}")
        fields[key] = value
    return fields


def handle_help(store: ClinicStore, args: list[str]) -> str:
    return HELP_TEXT


def handle_chairs(store: ClinicStore, args: list[str]) -> Table:
    table = Table(title="Chairs")
    table.add_column("Chair")
    table.add_column("State")
    table.add_column("Patient")
    table.add_column("Since")

    for chair in store.chairs:
        patient = store.get_patient(chair.patient_id) if chair.patient_id else None
        state = "[red]occupied[/red]" if chair.state == ChairState.OCCUPIED else "[green]free[/green]"
        table.add_row(
            chair.id,
            state,
            patient.name if patient else "",
            chair.start_time[11:19] if chair.start_time else "",
        )
    return table


def handle_patients(store: ClinicStore, args: list[str]) -> Table:
    assignment = "all"
    words = []
    for arg in args:
        if arg == "--assigned":
            assignment = "assigned"
        elif arg == "--unassigned":
            assignment = "unassigned"
        else:
            words.append(arg)

    patients = store.search_patients(" ".join(words), assignment=assignment)
    table = Table(title=f"Patients ({len(patients)})")
    table.add_column("#", justify="right")
    table.add_column("Name")
    table.add_column("Age", justify="right")
    table.add_column("ID")
    table.add_column("Phone")
    table.add_column("Chair")

    for patient in patients:
        table.add_row(
            str(patient.visit_number),
            patient.name,
            str(calculate_age(patient.birth_date, store.clock().date())),
            patient.id_value,
            patient.phone or "",
            patient.chair_id or "",
        )
    return table


def handle_add_patient(store: ClinicStore, args: list[str]) -> str:
    form = parse_patient_form(parse_fields(args), today=store.clock().date())
    patient = store.add_patient(**form.to_patient_data())
    return f"Registered [bold]{patient.name}[/bold] as patient #{patient.visit_number}"


def handle_update_patient(store: ClinicStore, args: list[str]) -> str:
    if not args:
        raise ValueError("Usage: update-patient <patient> field=value ...")
    patient = resolve_patient(store, args[0])
    updates = parse_fields(args[1:])
    unknown = sorted(set(updates) - set(ClinicStore.PATIENT_FIELDS))
    if unknown:
        raise ValidationError({field: "Field cannot be edited" for field in unknown})

    current = {field: getattr(patient, field) for field in ClinicStore.PATIENT_FIELDS}
    current["id_kind"] = patient.id_kind.value
    form = parse_patient_form({**current, **updates}, today=store.clock().date())

    store.update_patient(patient.id, form.to_patient_data())
    return f"Updated {patient.name}"


def handle_assign(store: ClinicStore, args: list[str]) -> str:
    if len(args) != 2:
        raise ValueError("Usage: assign <patient> <chair>")
    patient = resolve_patient(store, args[0])
    chair = store.assign_patient_to_chair(patient.id, resolve_chair_id(args[1]))
    return f"{patient.name} has been assigned to chair {chair.number}"


def handle_release(store: ClinicStore, args: list[str]) -> str:
    if len(args) != 1:
        raise ValueError("Usage: release <chair>")
    chair_id = resolve_chair_id(args[0])
    result = store.release_chair(chair_id)
    if result.patient is None:
        return f"{chair_id} was already free"
    return (
        f"{result.patient.name} has been released from {chair_id}. "
        f"Total time: {format_duration(result.duration)}"
    )


def handle_add_chair(store: ClinicStore, args: list[str]) -> str:
    chair = store.add_chair()
    return f"Added {chair.id}"


def handle_delete_chair(store: ClinicStore, args: list[str]) -> str:
    if len(args) != 1:
        raise ValueError("Usage: delete-chair <chair>")
    chair_id = resolve_chair_id(args[0])
    store.delete_chair(chair_id)
    return f"Deleted {chair_id}"


def handle_history(store: ClinicStore, args: list[str]) -> Table:
    if len(args) != 1:
        raise ValueError("Usage: history <patient>")
    patient = resolve_patient(store, args[0])
    visits = sorted(store.get_patient_history(patient.id), key=lambda v: v.start_time, reverse=True)

    table = Table(title=f"History of {patient.name}")
    table.add_column("Date")
    table.add_column("Chair")
    table.add_column("Duration", justify="right")
    for visit in visits:
        table.add_row(visit.start_time[:10], visit.chair_id, format_duration(visit.duration))
    return table


def handle_stats(store: ClinicStore, args: list[str]) -> str:
    stats = store.get_clinic_stats()
    return "\n".join([
        f"Patients: {stats.total_patients}",
        f"Chairs: {stats.total_chairs} ({stats.occupied_chairs} occupied, {stats.free_chairs} free)",
        f"Sessions today: {stats.patients_today}",
        f"Average session: {format_duration(stats.average_session_time)}",
    ])


def handle_report(store: ClinicStore, args: list[str]) -> str:
    if len(args) > 2:
        raise ValueError("Usage: report [text|csv|tsv] [dir]")
    fmt = args[0] if args else "text"
    report = ChairUsageReport(store)
    content = report.render(fmt)
    if len(args) < 2:
        return content

    path = Path(args[1]) / report_filename(fmt, report.today())
    path.write_text(content, encoding="utf-8", newline="")
    return f"Saved {fmt} report to {path}"


def handle_export(store: ClinicStore, args: list[str]) -> str:
    if len(args) != 1:
        raise ValueError("Usage: export <path>")
    path = Path(args[0])
    path.write_text(store.export_data(), encoding="utf-8")
    return f"Exported clinic data to {path}"


def handle_import(store: ClinicStore, args: list[str]) -> str:
    if len(args) != 1:
        raise ValueError("Usage: import <path>")
    path = Path(args[0])
    store.import_data(path.read_text(encoding="utf-8"))
    return f"Imported {len(store.patients)} patients and {len(store.chairs)} chairs from {path}"


def handle_clear(store: ClinicStore, args: list[str]) -> str:
    store.clear_all_data()
    return "All clinic data cleared"


# Command handlers mapping
COMMAND_HANDLERS = {
    "help": handle_help,
    "chairs": handle_chairs,
    "patients": handle_patients,
    "add-patient": handle_add_patient,
    "update-patient": handle_update_patient,
    "assign": handle_assign,
    "release": handle_release,
    "add-chair": handle_add_chair,
    "delete-chair": handle_delete_chair,
    "history": handle_history,
    "stats": handle_stats,
    "report": handle_report,
    "export": handle_export,
    "import": handle_import,
    "clear": handle_clear,
}


def process_command(store: ClinicStore, line: str):
    """Run one command line and return something printable."""
    parts = shlex.split(line)
    if not parts:
        return ""
    handler = COMMAND_HANDLERS.get(parts[0].lower())
    if handler:
        return handler(store, parts[1:])
    return f"Unknown command {parts[0]!r}. Type 'help' for the list of commands."


def main():
    """Main command loop."""
    logging.basicConfig(
        level=config.LOG_LEVEL,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )

    kv_store = SqliteKeyValueStore(config.DB_PATH)
    kv_store.init_database()
    store = ClinicStore(kv_store)
    store.load_data()

    console.print("[bold blue]Clinic chair tracker[/bold blue]")
    console.print("Type 'help' for commands, 'quit' or 'exit' to leave.\n")

    is_tty = sys.stdin.isatty()

    while True:
        try:
            line = console.input("[bold green]>[/bold green] ").strip()
            # Echo input when stdin is piped (not interactive)
            if not is_tty and line:
                console.print(f"[dim]{line}[/dim]")
        except (EOFError, KeyboardInterrupt):
            console.print("\n[bold blue]Goodbye![/bold blue]")
            break

        if not line:
            continue

        if line.lower() in ("quit", "exit"):
            console.print("[bold blue]Goodbye![/bold blue]")
            break

        try:
            console.print(process_command(store, line), "\n")
        except ValidationError as e:
            for field, message in e.errors.items():
                console.print(f"[bold red]{field}:[/bold red] {message}")
            console.print()
        except (ClinicError, ValueError, OSError) as e:
            logger.info("Command %r failed: %s", line, e)
            console.print(f"[bold red]Error:[/bold red] {e}\n")


if __name__ == "__main__":
    main()
