# Workers start with "celery -A inv_project worker -l info"; beat runs the overdue sweep.
from .celery import celery_app

__all__ = ("celery_app",)
