from .auth import AuthResult, AuthState, SignatureAuthenticator
from .handlers import ApplyProgress, ApplyResult, Outcome, ProviderEventApplier
from .matching import ChargeMatcher, MatchCriteria, MatchResult, MatchStatus
from .processor import InboundResponse, InboundWebhookProcessor, ProcessingResult
from .retry import RetryManager, RetryOutcome

__all__ = [
    "AuthResult", "AuthState", "SignatureAuthenticator",
    "ApplyProgress", "ApplyResult", "Outcome", "ProviderEventApplier",
    "ChargeMatcher", "MatchCriteria", "MatchResult", "MatchStatus",
    "InboundResponse", "InboundWebhookProcessor", "ProcessingResult",
    "RetryManager", "RetryOutcome",
]
