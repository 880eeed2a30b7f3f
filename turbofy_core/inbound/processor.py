import logging
import threading
from concurrent.futures import Executor, Future
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Mapping

from turbofy_core.inbound.auth import AuthState, SignatureAuthenticator
from turbofy_core.inbound.handlers import ApplyProgress, ApplyResult, Outcome, ProviderEventApplier
from turbofy_core.inbound.retry import RetryManager
from turbofy_core.models.delivery import InboundAttempt, InboundAttemptStatus
from turbofy_core.models.webhook import ProviderEvent, ProviderWebhookConfig
from turbofy_core.observability.alerting import AlertManager
from turbofy_core.repositories.base import InboundAttemptRepository

logger = logging.getLogger("turbofy.inbound")


@dataclass
class InboundResponse:
    status: int
    body: dict
    future: Future | None = field(default=None, repr=False)


@dataclass
class ProcessingResult:
    event_id: str
    succeeded: bool
    attempts: int
    outcome: Outcome | None = None
    error: str | None = None


class InboundWebhookProcessor:
    """Accepts provider callbacks and applies them off the request path.

    ``receive`` authenticates synchronously and answers right away: 401 for
    a failed authentication, 200 for everything else. Verified events are
    then applied through the retry schedule on ``executor`` (inline when no
    executor is given). Exhausting the schedule raises an operator alert
    rather than an error, since the provider has already been answered.
    """

    def __init__(
        self,
        authenticator: SignatureAuthenticator,
        applier: ProviderEventApplier,
        attempts: InboundAttemptRepository,
        retry_manager: RetryManager | None = None,
        alert_manager: AlertManager | None = None,
        executor: Executor | None = None,
    ):
        self.authenticator = authenticator
        self.applier = applier
        self.attempts = attempts
        self.retry_manager = retry_manager or RetryManager()
        self.alert_manager = alert_manager
        self.executor = executor
        self._in_flight: set[str] = set()
        self._in_flight_done = threading.Condition()

    def receive(self, provider: str, headers: Mapping[str, str], raw_body: bytes) -> InboundResponse:
        auth = self.authenticator.authenticate(headers, raw_body)

        if auth.state is AuthState.PROBE:
            return InboundResponse(200, {"received": True, "probe": True})

        if auth.state is not AuthState.VERIFIED:
            event = auth.event
            self.attempts.record(InboundAttempt(
                provider=provider,
                event_id=event.id if event else "unknown",
                event_type=event.object if event else "unknown",
                status=InboundAttemptStatus.REJECTED,
                attempt=0,
                signature_valid=False,
                error_message=f"{auth.code}: {auth.reason}",
            ))
            return InboundResponse(401, {"error": auth.code, "message": auth.reason})

        event, config = auth.event, auth.config
        if self.executor is not None:
            future = self.executor.submit(self._process_safely, provider, event, config)
        else:
            future = Future()
            future.set_result(self._process_safely(provider, event, config))
        return InboundResponse(200, {"received": True, "eventId": event.id}, future=future)

    def process_with_retry(
        self,
        provider: str,
        event: ProviderEvent,
        config: ProviderWebhookConfig,
    ) -> ProcessingResult:
        """Apply ``event`` through the retry schedule.

        Deliveries of one event id are handled one at a time, and an id the
        journal already shows as processed is not applied again.
        """
        with self._claim(event.id):
            if self._already_processed(event.id):
                logger.info(f"{event.object} {event.id} was already processed; duplicate delivery")
                return ProcessingResult(
                    event_id=event.id,
                    succeeded=True,
                    attempts=0,
                    outcome=Outcome.ALREADY_APPLIED,
                )
            return self._apply_with_retry(provider, event, config)

    def _apply_with_retry(
        self,
        provider: str,
        event: ProviderEvent,
        config: ProviderWebhookConfig,
    ) -> ProcessingResult:
        progress = ApplyProgress()

        def attempt_apply(attempt: int) -> ApplyResult:
            result = self.applier.apply(event, config, progress)
            unresolved = result.outcome is Outcome.UNRESOLVED
            self.attempts.record(InboundAttempt(
                provider=provider,
                event_id=event.id,
                event_type=event.object,
                status=InboundAttemptStatus.UNRESOLVED if unresolved else InboundAttemptStatus.PROCESSED,
                attempt=attempt,
                signature_valid=True,
                error_message=result.detail if unresolved else None,
                payload=event.data,
            ))
            return result

        def record_failure(attempt: int, error: Exception) -> None:
            self.attempts.record(InboundAttempt(
                provider=provider,
                event_id=event.id,
                event_type=event.object,
                status=InboundAttemptStatus.FAILED,
                attempt=attempt,
                signature_valid=True,
                error_message=f"{type(error).__name__}: {error}",
                payload=event.data,
            ))

        outcome = self.retry_manager.run(attempt_apply, on_failure=record_failure)
        if outcome.succeeded:
            return ProcessingResult(
                event_id=event.id,
                succeeded=True,
                attempts=outcome.attempts,
                outcome=outcome.result.outcome,
            )

        last_error = str(outcome.last_error) if outcome.last_error else None
        logger.error(f"{event.object} {event.id} failed after {outcome.attempts} attempts: {last_error}")
        if self.alert_manager:
            self.alert_manager.alert_processing_exhausted(
                provider=provider,
                event_type=event.object,
                event_id=event.id,
                attempts=outcome.attempts,
                last_error=last_error,
            )
        return ProcessingResult(event_id=event.id, succeeded=False, attempts=outcome.attempts, error=last_error)

    def get_unresolved(self) -> list[InboundAttempt]:
        return self.attempts.get_unresolved()

    def _already_processed(self, event_id: str) -> bool:
        return any(
            a.status is InboundAttemptStatus.PROCESSED
            for a in self.attempts.get_attempts(event_id)
        )

    @contextmanager
    def _claim(self, event_id: str):
        with self._in_flight_done:
            while event_id in self._in_flight:
                self._in_flight_done.wait()
            self._in_flight.add(event_id)
        try:
            yield
        finally:
            with self._in_flight_done:
                self._in_flight.discard(event_id)
                self._in_flight_done.notify_all()

    def _process_safely(self, provider: str, event: ProviderEvent, config: ProviderWebhookConfig) -> ProcessingResult:
        try:
            return self.process_with_retry(provider, event, config)
        except Exception as e:
            # journal or alert failure; the provider has been answered already
            logger.exception(f"Processing of {event.object} {event.id} aborted: {e}")
            return ProcessingResult(event_id=event.id, succeeded=False, attempts=0, error=str(e))
