from .base import Base
from .user import User, UserRole, Role
from .advertiser import AdvertiserProfile, VerificationDocument, VerificationStatus
from .listing import Listing, ListingPhoto, ListingStatus, ServiceTag, ListingTag, Highlight, HighlightType
from .report import Report, ReportReason, ReportStatus
from .plan import Plan, Subscription
from .audit import AdminActionLog

__all__ = [
    "Base",
    "User", "UserRole", "Role",
    "AdvertiserProfile", "VerificationDocument", "VerificationStatus",
    "Listing", "ListingPhoto", "ListingStatus", "ServiceTag", "ListingTag", "Highlight", "HighlightType",
    "Report", "ReportReason", "ReportStatus",
    "Plan", "Subscription",
    "AdminActionLog",
]
