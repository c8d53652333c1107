from __future__ import annotations

from enum import Enum


class UserRole(str, Enum):
    user = "user"
    admin = "admin"


class ModerationStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class HistoryAction(str, Enum):
    create = "create"
    update = "update"
    approve = "approve"
    reject = "reject"
    claim = "claim"
    delete = "delete"


class CheckInStatus(str, Enum):
    active = "active"
    completed = "completed"


class PowerOutlets(str, Enum):
    none = "None"
    very_limited = "Very Limited"
    limited = "Limited"
    abundant = "Abundant"


class NoiseLevel(str, Enum):
    very_quiet = "Very Quiet"
    quiet = "Quiet"
    moderate = "Moderate"
    loud = "Loud"
    very_loud = "Very Loud"

    @property
    def rank(self) -> int:
        """1 (very quiet) .. 5 (very loud)."""
        return list(NoiseLevel).index(self) + 1

    @classmethod
    def at_most(cls, rank: int) -> list["NoiseLevel"]:
        return [level for level in cls if level.rank <= rank]


class SeatingComfort(str, Enum):
    poor = "Poor"
    fair = "Fair"
    good = "Good"
    excellent = "Excellent"


class PriceRange(str, Enum):
    inexpensive = "$"
    moderate = "$$"
    expensive = "$$$"
    very_expensive = "$$$$"


class AmenityFeature(str, Enum):
    """Feature names accepted by the cafe search `amenities` filter."""

    wifi = "wifi"
    power = "power"
    restrooms = "restrooms"
    parking = "parking"
    vegan = "vegan"
    vegetarian = "vegetarian"
    gluten_free = "gluten_free"
    dairy_free = "dairy_free"


class VenueSort(str, Enum):
    rating = "rating"
    reviews = "reviews"
    newest = "newest"
