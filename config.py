"""
Application configuration.

Values come from environment variables (a local .env file is loaded first)
and can be overridden by create_app(test_config).
"""

import os
from datetime import datetime

import pytz
from dotenv import load_dotenv
from flask import current_app

load_dotenv()

basedir = os.path.abspath(os.path.dirname(__file__))

DEFAULT_TIMEZONE = 'Europe/Madrid'


class Config:
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-planner-key')
    SQLALCHEMY_DATABASE_URI = os.getenv(
        'DATABASE_URL', 'sqlite:///' + os.path.join(basedir, 'planner.db'))
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Calendar used for "today" and for weekday arithmetic
    SCHOOL_TIMEZONE = os.getenv('SCHOOL_TIMEZONE', DEFAULT_TIMEZONE)
    # How far ahead a schedule edit regenerates classes
    RECONCILE_HORIZON_MONTHS = int(os.getenv('RECONCILE_HORIZON_MONTHS', '1'))
    LARGE_RANGE_DAYS = int(os.getenv('LARGE_RANGE_DAYS', '730'))

    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()
    LOG_FORMAT = os.getenv(
        'LOG_FORMAT', '[%(asctime)s] %(levelname)s in %(module)s: %(message)s')
    LOG_FILE = os.getenv('LOG_FILE')


def school_timezone(tz_name=None):
    if tz_name is None:
        tz_name = current_app.config.get('SCHOOL_TIMEZONE', DEFAULT_TIMEZONE)
    try:
        return pytz.timezone(tz_name)
    except pytz.UnknownTimeZoneError:
        current_app.logger.warning(
            f"Unknown timezone '{tz_name}', falling back to {DEFAULT_TIMEZONE}.")
        return pytz.timezone(DEFAULT_TIMEZONE)


def school_today(tz_name=None):
    """Calendar date of 'now' in the school's timezone."""
    return datetime.now(pytz.utc).astimezone(school_timezone(tz_name)).date()
