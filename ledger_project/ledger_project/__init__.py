# Celery instance is defined in ledger_project/celery.py
# It points celery_app at the Django settings so tasks share the ORM config
from .celery import celery_app

__all__ = ("celery_app",)

""" Workers run with "celery -A ledger_project worker -l info".
    -A ledger_project imports this package, which exposes celery_app. """
