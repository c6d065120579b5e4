# backend/hssedb/__init__.py
"""
Import ORM models from each app so that:

- Alembic and Base.metadata.create_all() see all tables.
- String-based relationship targets resolve regardless of import order.

The actual model classes are kept in hssedb/apps/*/models.py.
"""

from .apps.events import models as events_models                  # outbox
from .apps.audit import models as audit_models                    # audit trail
from .apps.notifications import models as notifications_models    # notification log
from .apps.training import models as training_models              # training + participants
from .apps.certifications import models as certifications_models  # certificates
from .apps.security import models as security_models              # security incidents + controls
from .apps.inspections import models as inspections_models        # inspections + findings
from .apps.work_permits import models as work_permits_models      # permits to work

__all__ = [
    "events_models",
    "audit_models",
    "notifications_models",
    "training_models",
    "certifications_models",
    "security_models",
    "inspections_models",
    "work_permits_models",
]
