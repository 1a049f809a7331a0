from schemas.deal import ApplicationForm, DealCreate, DealUpdate, NoteCreate, StageChange
from schemas.prequalification import PrequalificationInput, PrequalificationResult, Verdict
from schemas.tenant import BrokerSignup, SubscriptionTier, VendorInvite

__all__ = [
    "ApplicationForm",
    "DealCreate",
    "DealUpdate",
    "NoteCreate",
    "StageChange",
    "PrequalificationInput",
    "PrequalificationResult",
    "Verdict",
    "BrokerSignup",
    "SubscriptionTier",
    "VendorInvite",
]
