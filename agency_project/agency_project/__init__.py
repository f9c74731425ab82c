# Load the Celery app whenever Django starts so @shared_task binds to it
from .celery import celery_app

__all__ = ("celery_app",)

""" Run a worker with: celery -A agency_project worker -Q default,mail,billing -l info
    and the billing scheduler with: celery -A agency_project beat -l info """
