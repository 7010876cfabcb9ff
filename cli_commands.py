"""
Flask CLI commands for class generation maintenance.
"""

import click
from flask import current_app
from flask.cli import with_appcontext

from config import school_today
from class_generation import to_date
from class_tracking import generate_weekly_classes
from errors import PlannerError
from record_store import SQLAlchemyRecordStore
from reconciliation import default_horizon, refresh_student_classes


def _reference_date(value):
    if not value:
        return school_today()
    try:
        return to_date(value)
    except ValueError:
        raise click.BadParameter('expected YYYY-MM-DD', param_hint='--date') from None


@click.command('generate-weekly-classes')
@click.option('--date', 'date_str', default=None, help='Any day of the target week (YYYY-MM-DD). Defaults to today.')
@with_appcontext
def generate_weekly_classes_command(date_str):
    """Create this week's recurring classes for every student with a fixed schedule."""
    today = _reference_date(date_str)
    summary = generate_weekly_classes(SQLAlchemyRecordStore(), today)

    click.echo(f"Week {summary['week_start']} to {summary['week_end']}")
    for result in summary['results']:
        line = f"  {result['student_name']}: {result['classes_created']} created"
        if result.get('message'):
            line += f" ({result['message']})"
        click.echo(line)
    click.echo(f"Total: {summary['total_classes_created']} classes for {summary['students_processed']} students")


@click.command('refresh-classes')
@click.option('--student-id', type=int, default=None, help='Only this student. Defaults to every student with a schedule.')
@click.option('--date', 'date_str', default=None, help='Reference "today" (YYYY-MM-DD), today or later. Defaults to today.')
@with_appcontext
def refresh_classes_command(student_id, date_str):
    """
    Rebuild future recurring classes from the stored weekly schedules.

    Past classes are left alone. Use this to recover after an interrupted
    schedule update.
    """
    today = _reference_date(date_str)
    # Recurring rows from this date on are rebuilt
    if today < school_today():
        raise click.BadParameter('cannot be earlier than today', param_hint='--date')
    horizon_end = default_horizon(today, current_app.config['RECONCILE_HORIZON_MONTHS'])
    store = SQLAlchemyRecordStore()

    if student_id is not None:
        student_ids = [student_id]
    else:
        student_ids = [s.id for s in store.list_students(with_schedule=True)]

    failures = 0
    for sid in student_ids:
        try:
            result = refresh_student_classes(store, sid, today, horizon_end)
        except PlannerError as e:
            failures += 1
            current_app.logger.error(f"Refreshing classes of student {sid} failed: {e}")
            click.echo(f"  student {sid}: FAILED ({e})")
            continue
        click.echo(f"  student {sid}: {result.deleted} deleted, {result.created} created")

    click.echo(f"Refreshed {len(student_ids) - failures} of {len(student_ids)} students")
    if failures:
        raise SystemExit(1)


def register_commands(app):
    app.cli.add_command(generate_weekly_classes_command)
    app.cli.add_command(refresh_classes_command)
