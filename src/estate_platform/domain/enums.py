"""Domain enumerations for the Estate Platform.

All enums use the (str, Enum) pattern to ensure JSON serialization compatibility.
"""

from enum import Enum


class PropertyStatus(str, Enum):
    """Lifecycle status of a property listing."""

    DRAFT = "draft"
    FOR_SALE = "for-sale"
    WITHDRAWN = "withdrawn"
    SOLD = "sold"


class RoomBucket(str, Enum):
    """Discretized bedroom/bathroom count used by the search filter.

    Declaration order matters: a count maps to the bucket at index
    ``min(count, len(RoomBucket) - 1)``.
    """

    ZERO = "0"
    ONE = "1"
    TWO = "2"
    THREE = "3"
    MORE_THAN_THREE = ">3"


class AuthMode(str, Enum):
    """Authorization mode a data client is bound to."""

    IDENTITY_POOL = "identity_pool"  # guest credentials
    USER_POOL = "user_pool"  # signed-in user tokens


class StorageCategory(str, Enum):
    """Top-level object storage prefixes."""

    PROPERTY_IMAGES = "property-images"
    PROFILE_PICTURES = "profile-pictures"


ADMIN_GROUP = "admin"
