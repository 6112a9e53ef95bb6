# SQLModel definitions, imported here to ensure metadata is populated before create_all.
from .base import UUIDMixin, TimestampMixin  # noqa: F401
from .user import User  # noqa: F401
from .request import DesignRequest  # noqa: F401
from .event import EventImmutableError, StatusEvent  # noqa: F401
from .notification import Notification  # noqa: F401
from .user_setting import UserSetting  # noqa: F401
