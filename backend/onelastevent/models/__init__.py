from onelastevent.models.user import User
from onelastevent.models.event import Event
from onelastevent.models.inscription import Inscription
from onelastevent.models.payment import Payment

__all__ = ["User", "Event", "Inscription", "Payment"]
