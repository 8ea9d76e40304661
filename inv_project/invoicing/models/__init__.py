from .auditlog import AuditLog
from .client import Client, ClientStatus
from .invoice import Invoice, LineItem
from .workspace import User, Workspace, WorkspaceMembership
