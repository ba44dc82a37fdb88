from .session import AccountAcquisitionEngine
from .selectors import CandidateSet, PortalSelectors

__all__ = [
    "AccountAcquisitionEngine",
    "CandidateSet",
    "PortalSelectors",
]
