import logging

from django.db.models.signals import post_delete
from django.dispatch import receiver

from .models import Invoice, Workspace

logger = logging.getLogger(__name__)


""" Deletion guards live in Invoice.delete() and InvoiceQuerySet.delete(). """


@receiver(post_delete, sender=Invoice)
def log_deleted_invoice(sender, instance, origin=None, **kwargs):
    # a workspace teardown removes its invoices along with it
    if isinstance(origin, Workspace):
        return
    logger.info("Deleted invoice %s (%s)", instance.invoice_number, instance.status)
