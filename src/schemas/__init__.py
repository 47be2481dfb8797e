from src.schemas.billing import StripeWebhookResponse
from src.schemas.member import MemberInviteRequest, MemberRemoveResponse, MemberResponse

__all__ = [
    "MemberInviteRequest",
    "MemberRemoveResponse",
    "MemberResponse",
    "StripeWebhookResponse",
]
