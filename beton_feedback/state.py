from dataclasses import dataclass, field

from fastapi import Request

from beton_feedback.audit import AuditLog
from beton_feedback.auth.authenticators import AdminAuthenticator, build_authenticator
from beton_feedback.catalog import ProductCatalog
from beton_feedback.events import EventBus


@dataclass
class AppState:
    """Process-wide mutable state owned by one application instance."""

    events: EventBus = field(default_factory=EventBus)
    products: ProductCatalog = field(default_factory=ProductCatalog)
    authenticator: AdminAuthenticator = field(default_factory=build_authenticator)
    audit_log: AuditLog | None = None

    def __post_init__(self):
        if self.audit_log is None:
            self.audit_log = AuditLog(events=self.events)


def get_state(request: Request) -> AppState:
    return request.app.state.feedback
