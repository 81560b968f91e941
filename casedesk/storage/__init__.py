from .base import Collection, EntityStore
from .memory import EphemeralStore
from .mongo import DurableStore
from .selector import select_backend
