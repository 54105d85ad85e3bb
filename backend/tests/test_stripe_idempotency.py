"""Tests for Stripe idempotency key generation and Stripe mutation safeguards."""
from __future__ import annotations

from types import SimpleNamespace

import pytest

from tumi.infra.stripe_client import call_stripe_client_method, is_mutating_method
from tumi.infra.stripe_idempotency import make_stripe_idempotency_key


class TestMakeStripeIdempotencyKey:
    def test_same_inputs_produce_same_key(self):
        key_a = make_stripe_idempotency_key(
            "registration_move_refund", payment_intent="pi_1", registration_id="reg-1"
        )
        key_b = make_stripe_idempotency_key(
            "registration_move_refund", payment_intent="pi_1", registration_id="reg-1"
        )
        assert key_a == key_b

    def test_different_registration_different_key(self):
        key_a = make_stripe_idempotency_key(
            "registration_move_refund", payment_intent="pi_1", registration_id="reg-1"
        )
        key_b = make_stripe_idempotency_key(
            "registration_move_refund", payment_intent="pi_1", registration_id="reg-2"
        )
        assert key_a != key_b

    def test_extra_ordering_does_not_matter(self):
        key_a = make_stripe_idempotency_key("refund", extra={"a": 1, "b": [1, 2]})
        key_b = make_stripe_idempotency_key("refund", extra={"b": [1, 2], "a": 1})
        assert key_a == key_b

    def test_key_format(self):
        key = make_stripe_idempotency_key("registration_move_refund", payment_intent="pi_1")
        prefix, digest = key.split("-", 1)
        assert prefix == "registra"
        assert len(digest) == 32
        assert len(key) < 255


class TestCallStripeClientMethod:
    def test_method_classification(self):
        assert is_mutating_method("create_refund")
        assert not is_mutating_method("retrieve_charge")
        assert not is_mutating_method("verify_webhook")

    @pytest.mark.anyio
    async def test_mutation_without_idempotency_key_is_rejected(self):
        client = SimpleNamespace(create_refund=lambda **kwargs: kwargs)

        with pytest.raises(ValueError, match="idempotency_key"):
            await call_stripe_client_method(client, "create_refund", payment_intent="pi_1")

    @pytest.mark.anyio
    async def test_mutation_with_key_passes_through(self):
        client = SimpleNamespace(create_refund=lambda **kwargs: kwargs)

        result = await call_stripe_client_method(
            client, "create_refund", payment_intent="pi_1", idempotency_key="registra-abc"
        )

        assert result == {"payment_intent": "pi_1", "idempotency_key": "registra-abc"}

    @pytest.mark.anyio
    async def test_async_methods_are_awaited(self):
        async def _retrieve(charge_id):
            return {"id": charge_id}

        client = SimpleNamespace(retrieve_charge=_retrieve)

        assert await call_stripe_client_method(client, "retrieve_charge", "ch_1") == {"id": "ch_1"}

    @pytest.mark.anyio
    async def test_missing_method_raises(self):
        with pytest.raises(AttributeError):
            await call_stripe_client_method(SimpleNamespace(), "retrieve_charge", "ch_1")
