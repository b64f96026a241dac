from codecombat.models.registrant import Registrant
from codecombat.models.admin import Admin

__all__ = ["Registrant", "Admin"]
