from washboard.db.models.booking import ACTIVE_STATUSES, Booking, BookingStatus
from washboard.db.models.branch import Branch
from washboard.db.models.magic_link import MagicLink, MagicLinkState
from washboard.db.models.shop_status import ShopStatus
from washboard.db.models.user import User, UserRole

__all__ = [
    "ACTIVE_STATUSES",
    "Booking",
    "BookingStatus",
    "Branch",
    "MagicLink",
    "MagicLinkState",
    "ShopStatus",
    "User",
    "UserRole",
]
