"""SQLAlchemy 2.0 ORM models for the review workflow.

Import all models here so Alembic's ``env.py`` and ``init_models`` can
discover them via::

    import boardreview.models.db  # noqa: F401
"""

from boardreview.models.db.base import Base, TimestampMixin  # noqa: F401
from boardreview.models.db.user import User  # noqa: F401
from boardreview.models.db.application import ClientApplication  # noqa: F401
from boardreview.models.db.review import (  # noqa: F401
    ApplicationComment,
    ApplicationVote,
)
from boardreview.models.db.history import ApplicationStatusHistory  # noqa: F401
from boardreview.models.db.notification import ApplicationNotification  # noqa: F401
