from typing import Optional

from ..models import AuditLog, Workspace


def log_action(
    *,
    action: str,
    instance,
    user=None,
    workspace: Optional[Workspace] = None,
    changes: dict | None = None,
):
    """
    Central audit logger.
    Safe to call multiple times (caller ensures idempotency).
    """
    if not workspace:
        workspace = getattr(instance, "workspace", None)

    # anonymous requests are recorded as system actions
    if user is not None and not getattr(user, "is_authenticated", False):
        user = None

    return AuditLog.objects.create(
        workspace=workspace,
        user=user,
        action=action,
        object_type=instance.__class__.__name__,
        object_id=str(instance.pk),
        changes=changes,
    )
