from app.models.base import Base
from app.models.check_in import CheckIn
from app.models.event import Event
from app.models.rsvp import RSVP
from app.models.user import User

__all__ = ["Base", "User", "Event", "RSVP", "CheckIn"]
