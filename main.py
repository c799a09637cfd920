"""
Firebase Functions entry point.
All functions must be exported from this file for deployment.
"""

import os

import firebase_admin
from firebase_admin import initialize_app

from pillmate.config.env_loader import load_environment
from pillmate.util.logger import configure_logging, get_logger

load_environment()

# Set emulator environment variables if running in emulators
if os.getenv('FUNCTIONS_EMULATOR') == 'true':
    if not os.getenv('FIRESTORE_EMULATOR_HOST'):
        os.environ['FIRESTORE_EMULATOR_HOST'] = 'localhost:8080'
    if not os.getenv('FIREBASE_AUTH_EMULATOR_HOST'):
        os.environ['FIREBASE_AUTH_EMULATOR_HOST'] = 'localhost:9099'
    if not os.getenv('FIREBASE_DATABASE_EMULATOR_HOST'):
        os.environ['FIREBASE_DATABASE_EMULATOR_HOST'] = 'localhost:9000'

# Initialize Firebase Admin SDK; the Realtime Database needs its URL
if not firebase_admin._apps:
    app_options = {}
    if os.getenv('FIREBASE_DATABASE_URL'):
        app_options['databaseURL'] = os.environ['FIREBASE_DATABASE_URL']
    initialize_app(options=app_options or None)

# Configure logging
configure_logging()
logger = get_logger(__name__)

# Import callable functions
from pillmate.brokers.callable.link_device import link_device_callable  # noqa: E402
from pillmate.brokers.callable.get_slots import get_slots_callable  # noqa: E402
from pillmate.brokers.callable.update_slot import update_slot_callable  # noqa: E402
from pillmate.brokers.callable.dispense import dispense_callable  # noqa: E402
from pillmate.brokers.callable.rotate_motor import rotate_motor_callable  # noqa: E402
from pillmate.brokers.callable.check_allergy import check_allergy_callable  # noqa: E402
from pillmate.brokers.callable.check_interaction import check_interaction_callable  # noqa: E402
from pillmate.brokers.callable.get_suggestions import get_suggestions_callable  # noqa: E402
from pillmate.brokers.callable.add_dose import add_dose_callable  # noqa: E402
from pillmate.brokers.callable.chat import chat_callable  # noqa: E402

# Import HTTPS functions
from pillmate.brokers.https.health_check import health_check  # noqa: E402

# Import scheduled functions
from pillmate.brokers.scheduled.fire_due_reminders import fire_due_reminders  # noqa: E402

# Import triggered functions
from pillmate.brokers.triggered.on_dose_written import on_dose_written  # noqa: E402
from pillmate.brokers.triggered.on_slots_written import on_slots_written  # noqa: E402

# Export all functions for Firebase deployment
__all__ = [
    # Callable functions
    'link_device_callable',
    'get_slots_callable',
    'update_slot_callable',
    'dispense_callable',
    'rotate_motor_callable',
    'check_allergy_callable',
    'check_interaction_callable',
    'get_suggestions_callable',
    'add_dose_callable',
    'chat_callable',

    # HTTPS functions
    'health_check',

    # Scheduled functions
    'fire_due_reminders',

    # Triggered functions
    'on_dose_written',
    'on_slots_written',
]

logger.info("Firebase Functions initialized successfully")
