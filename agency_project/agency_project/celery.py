from __future__ import annotations
import os
from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "agency_project.settings")

celery_app = Celery("agency_project")

# broker, eager mode and the beat schedule all come from CELERY_* settings
celery_app.config_from_object("django.conf:settings", namespace="CELERY")

# e-mail goes to its own queue so a slow SMTP server never delays billing
celery_app.conf.task_routes = {
    "brokerage_core.tasks.send_notification": {"queue": "mail"},
    "brokerage_core.tasks.bill_due_subscriptions": {"queue": "billing"},
    "brokerage_core.tasks.mark_overdue_invoices": {"queue": "billing"},
}
celery_app.conf.task_default_queue = "default"

# finds brokerage_core/tasks.py
celery_app.autodiscover_tasks()
