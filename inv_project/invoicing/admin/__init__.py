from . import auditlog, invoice, workspace  # noqa: F401
