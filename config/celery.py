"""
Celery configuration for async task processing.
"""
import os
from celery import Celery
from celery.schedules import crontab

# Set the default Django settings module
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings')

# Create Celery app
app = Celery('licensing')

# Load config from Django settings with CELERY_ prefix
app.config_from_object('django.conf:settings', namespace='CELERY')

# Auto-discover tasks in all installed apps
app.autodiscover_tasks()


# Periodic task schedule
app.conf.beat_schedule = {
    # Move ACTIVE licenses past their end date to EXPIRED (00:15 daily)
    'expire-due-licenses': {
        'task': 'licensing.expire_due_licenses',
        'schedule': crontab(hour=0, minute=15),
    },

    # Persist EXPIRED on renewal offers past their window (hourly)
    'reconcile-expired-offers': {
        'task': 'licensing.reconcile_expired_offers',
        'schedule': crontab(minute=5),
    },

    # Generate and accept renewals for auto-renew licenses (06:00 daily)
    'process-auto-renewals': {
        'task': 'licensing.process_auto_renewals',
        'schedule': crontab(hour=6, minute=0),
    },
}

