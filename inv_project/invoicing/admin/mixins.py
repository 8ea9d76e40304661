class TenantAdminMixin:
    """
    Enforce tenant isolation in Django admin.
    Uses request.workspace (set by CurrentWorkspaceMiddleware)
    or falls back to request.user.default_workspace.
    """

    tenant_field = "workspace"

    def _get_request_workspace(self, request):
        workspace = getattr(request, "workspace", None)
        if workspace is None:
            workspace = getattr(request.user, "default_workspace", None)
        return workspace

    def get_queryset(self, request):
        qs = super().get_queryset(request)
        if request.user.is_superuser:
            return qs
        workspace = self._get_request_workspace(request)
        if workspace is None:
            return qs.none()
        return qs.filter(**{self.tenant_field: workspace})

    def formfield_for_foreignkey(self, db_field, request, **kwargs):
        """Restrict workspace-scoped dropdowns (workspace, client) to the current workspace."""
        if not request.user.is_superuser:
            workspace = self._get_request_workspace(request)
            rel_model = db_field.related_model
            if db_field.name == "workspace":
                kwargs["queryset"] = rel_model.objects.filter(
                    pk=getattr(workspace, "pk", None)
                )
            elif any(f.name == "workspace" for f in rel_model._meta.fields):
                kwargs["queryset"] = rel_model.objects.filter(workspace=workspace)
        return super().formfield_for_foreignkey(db_field, request, **kwargs)

    def save_model(self, request, obj, form, change):
        # objects are always owned by the current workspace (unless superuser)
        if not change and not request.user.is_superuser:
            workspace = self._get_request_workspace(request)
            if workspace is not None:
                obj.workspace = workspace
        super().save_model(request, obj, form, change)
