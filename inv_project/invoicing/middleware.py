from django.utils.deprecation import MiddlewareMixin

from .models import Workspace

SESSION_KEY = "active_workspace_id"


class CurrentWorkspaceMiddleware(MiddlewareMixin):
    """Attach ``request.workspace``: the one active workspace of this session."""

    def process_request(self, request):
        user = getattr(request, "user", None)
        if user is None or not user.is_authenticated:
            request.workspace = None
            return

        # Default when the user never switched workspaces
        workspace = user.default_workspace

        # A switch is stored in the session; membership is re-checked so a
        # tampered session cannot jump into another tenant
        workspace_id = request.session.get(SESSION_KEY)
        if workspace_id:
            workspace = Workspace.objects.filter(
                id=workspace_id,
                memberships__user=user,
                memberships__is_active=True,
            ).first()

        request.workspace = workspace


def activate_workspace(request, workspace):
    """Make ``workspace`` the active one for this session."""
    request.session[SESSION_KEY] = workspace.pk
    request.workspace = workspace
