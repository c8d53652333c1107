from workcafe.models.users import UserAuth, UserProfile
from workcafe.models.venues import (
    Category,
    DietaryOptions,
    Venue,
    VenueAmenities,
    VenueHistory,
    VenueHours,
    VenuePhoto,
    Verification,
)
from workcafe.models.reviews import Review
from workcafe.models.checkins import CheckIn
from workcafe.models.favorites import Favorite

__all__ = [
    "UserAuth",
    "UserProfile",
    "Category",
    "DietaryOptions",
    "Venue",
    "VenueAmenities",
    "VenueHistory",
    "VenueHours",
    "VenuePhoto",
    "Verification",
    "Review",
    "CheckIn",
    "Favorite",
]
