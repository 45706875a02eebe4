"""
Services for Scale

Business logic services that handle:
- Rating submission and debounced auto-save
- Group, object and membership management
- Claim links and claim requests
- Live score recomputation
- Rating integrity maintenance
"""

from src.scale.services.rating_service import RatingService, changed_ratings, rateable_objects, slider_default
from src.scale.services.debounce import RatingDebouncer
from src.scale.services.group_service import GroupService
from src.scale.services.object_service import ImageUpload, ObjectService
from src.scale.services.membership_service import MembershipService
from src.scale.services.claim_service import ClaimService, claim_url
from src.scale.services.live_scores import LiveScoreboard, ScoreSnapshot
from src.scale.services.integrity_service import IntegrityService

__all__ = [
    "RatingService",
    "changed_ratings",
    "rateable_objects",
    "slider_default",
    "RatingDebouncer",
    "GroupService",
    "ImageUpload",
    "ObjectService",
    "MembershipService",
    "ClaimService",
    "claim_url",
    "LiveScoreboard",
    "ScoreSnapshot",
    "IntegrityService",
]
