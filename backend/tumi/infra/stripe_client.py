from __future__ import annotations

import inspect
from typing import Any, Callable

import anyio

from tumi.infra.stripe_resilience import stripe_circuit
from tumi.settings import settings


MUTATING_METHOD_PREFIXES: tuple[str, ...] = (
    "create_",
    "cancel_",
    "refund_",
    "update_",
)

READ_ONLY_METHOD_PREFIXES: tuple[str, ...] = (
    "retrieve_",
    "list_",
    "verify_",
)


def is_mutating_method(method_name: str) -> bool:
    if method_name.startswith(READ_ONLY_METHOD_PREFIXES):
        return False
    return method_name.startswith(MUTATING_METHOD_PREFIXES)


class StripeClient:
    def __init__(
        self,
        *,
        secret_key: str | None,
        webhook_secret: str | None,
        stripe_sdk: Any | None = None,
    ) -> None:
        """Initialize Stripe client credentials.

        Passing ``None`` for a credential falls back to the global settings.
        Operations still fail fast with ``ValueError`` when a key is missing.
        """
        if stripe_sdk is None:
            import stripe as stripe_sdk  # type: ignore

        self.stripe = stripe_sdk
        self.secret_key = secret_key or settings.stripe_secret_key
        self.webhook_secret = webhook_secret or settings.stripe_webhook_secret

    async def _call(self, fn: Callable[..., Any], /, *args, **kwargs) -> Any:
        def _sync_call() -> Any:
            return fn(*args, **kwargs)

        return await stripe_circuit.call(lambda: anyio.to_thread.run_sync(_sync_call))

    def _require_secret_key(self) -> None:
        if not self.secret_key:
            raise ValueError("Stripe secret key not configured")
        self.stripe.api_key = self.secret_key

    async def verify_webhook(self, payload: bytes, signature: str | None) -> Any:
        if not self.webhook_secret:
            raise ValueError("Stripe webhook secret not configured")
        if not signature:
            raise ValueError("Missing Stripe signature header")
        # Local HMAC check, kept off the Stripe circuit.
        return self.stripe.Webhook.construct_event(
            payload=payload,
            sig_header=signature,
            secret=self.webhook_secret,
        )

    async def retrieve_setup_intent(self, setup_intent_id: str) -> Any:
        self._require_secret_key()
        return await self._call(self.stripe.SetupIntent.retrieve, setup_intent_id)

    async def retrieve_balance_transaction(self, balance_transaction_id: str) -> Any:
        self._require_secret_key()
        return await self._call(self.stripe.BalanceTransaction.retrieve, balance_transaction_id)

    async def retrieve_charge(self, charge_id: str) -> Any:
        self._require_secret_key()
        return await self._call(self.stripe.Charge.retrieve, charge_id)

    async def create_refund(self, *, payment_intent: str, idempotency_key: str | None = None) -> Any:
        self._require_secret_key()
        extra: dict[str, Any] = {}
        if idempotency_key:
            extra["idempotency_key"] = idempotency_key
        return await self._call(self.stripe.Refund.create, payment_intent=payment_intent, **extra)


def resolve_client(app_state: Any) -> Any:
    """Resolve the Stripe client for the current app state.

    Priority: ``state.stripe_client`` (tests swap fakes in here), then
    ``state.services.stripe_client``, then a fresh ``StripeClient`` built from
    the global settings and cached on the state.
    """
    state = getattr(app_state, "state", app_state)
    client = getattr(state, "stripe_client", None)
    if client is not None:
        if isinstance(client, StripeClient):
            if not client.secret_key:
                client.secret_key = settings.stripe_secret_key
            if not client.webhook_secret:
                client.webhook_secret = settings.stripe_webhook_secret
        return client
    services = getattr(state, "services", None)
    if services is not None and getattr(services, "stripe_client", None) is not None:
        return services.stripe_client
    client = StripeClient(
        secret_key=settings.stripe_secret_key,
        webhook_secret=settings.stripe_webhook_secret,
    )
    state.stripe_client = client
    return client


async def call_stripe_client_method(client: Any, method_name: str, /, *args, **kwargs) -> Any:
    method = getattr(client, method_name, None)
    if method is None:
        raise AttributeError(f"Stripe client missing method {method_name}")

    if is_mutating_method(method_name) and not kwargs.get("idempotency_key"):
        raise ValueError(
            f"Stripe mutation '{method_name}' requires idempotency_key to be provided"
        )

    result = method(*args, **kwargs)
    if inspect.isawaitable(result):
        return await result
    return result
