import unittest
from typing import Protocol

import pytest

from wiregraph import (
    AmbiguousBindingError,
    Container,
    Dependency,
    Lifetime,
    ServiceKey,
    UnregisteredServiceError,
)


class PaymentGateway(Protocol):
    def pay(self, amount: float) -> bool: ...


class StripeGateway:
    def pay(self, amount: float) -> bool:
        return True


class PayPalGateway:
    def pay(self, amount: float) -> bool:
        return True


class Checkout:
    def __init__(self, primary: PaymentGateway, fallback: PaymentGateway):
        self.primary = primary
        self.fallback = fallback


class TestQualifiedResolution(unittest.TestCase):
    cont: Container

    def setUp(self):
        self.cont = Container()
        self.cont.register(PaymentGateway, StripeGateway, qualifier="stripe")
        self.cont.register(PaymentGateway, PayPalGateway, qualifier="paypal")

    def test_resolve_without_qualifier_is_ambiguous(self):
        with pytest.raises(AmbiguousBindingError) as ctx:
            self.cont.resolve(PaymentGateway)

        assert ctx.value.qualifiers == ("paypal", "stripe")
        assert "'paypal'" in str(ctx.value)
        assert "'stripe'" in str(ctx.value)

    def test_resolve_with_qualifier_picks_matching_registration(self):
        assert isinstance(self.cont.resolve(PaymentGateway, "stripe"), StripeGateway)
        assert isinstance(self.cont.resolve(PaymentGateway, "paypal"), PayPalGateway)

    def test_unknown_qualifier_does_not_fall_back(self):
        with pytest.raises(UnregisteredServiceError) as ctx:
            self.cont.resolve(PaymentGateway, "iyzico")
        assert ctx.value.key == ServiceKey(PaymentGateway, "iyzico")

    def test_qualifier_does_not_fall_back_to_unqualified_registration(self):
        c = Container()
        c.register(PaymentGateway, StripeGateway)

        with pytest.raises(UnregisteredServiceError):
            c.resolve(PaymentGateway, "stripe")

    def test_unqualified_registration_is_its_own_qualifier(self):
        class DefaultGateway:
            def pay(self, amount: float) -> bool:
                return False

        self.cont.register(PaymentGateway, DefaultGateway)

        assert isinstance(self.cont.resolve(PaymentGateway), DefaultGateway)
        assert isinstance(self.cont.resolve(PaymentGateway, "stripe"), StripeGateway)

    def test_qualified_dependencies_are_injected(self):
        self.cont.register(
            Checkout,
            Checkout,
            dependencies=[Dependency(PaymentGateway, "stripe"), Dependency(PaymentGateway, "paypal")],
        )

        checkout = self.cont.resolve(Checkout)
        assert isinstance(checkout.primary, StripeGateway)
        assert isinstance(checkout.fallback, PayPalGateway)
        assert checkout.primary is self.cont.resolve(PaymentGateway, "stripe")

    def test_ambiguous_dependency_reports_requiring_chain(self):
        self.cont.register(Checkout, Checkout, dependencies=[PaymentGateway, PaymentGateway])

        with pytest.raises(AmbiguousBindingError) as ctx:
            self.cont.resolve(Checkout)
        assert ctx.value.path == (ServiceKey(Checkout),)

    def test_singletons_are_cached_per_qualifier(self):
        stripe = self.cont.resolve(PaymentGateway, "stripe")
        paypal = self.cont.resolve(PaymentGateway, "paypal")

        assert stripe is not paypal
        assert self.cont.resolve(PaymentGateway, "stripe") is stripe
        assert self.cont.resolve(PaymentGateway, "paypal") is paypal


def test_single_qualified_registration_is_implicit_default():
    c = Container()
    c.register(PaymentGateway, StripeGateway, qualifier="stripe")

    implicit = c.resolve(PaymentGateway)
    assert isinstance(implicit, StripeGateway)
    # same registration, same singleton
    assert c.resolve(PaymentGateway, "stripe") is implicit


def test_implicit_default_becomes_ambiguous_when_second_qualifier_registered():
    c = Container()
    c.register(PaymentGateway, StripeGateway, qualifier="stripe")
    c.resolve(PaymentGateway)

    c.register(PaymentGateway, PayPalGateway, qualifier="paypal")
    with pytest.raises(AmbiguousBindingError):
        c.resolve(PaymentGateway)


def test_same_qualifier_registered_twice_overwrites():
    c = Container()
    c.register(PaymentGateway, StripeGateway, qualifier="card")
    c.register(PaymentGateway, PayPalGateway, qualifier="card", lifetime=Lifetime.TRANSIENT)

    assert c.qualifiers(PaymentGateway) == ("card",)
    assert isinstance(c.resolve(PaymentGateway, "card"), PayPalGateway)
    assert c.resolve(PaymentGateway, "card") is not c.resolve(PaymentGateway, "card")


def test_qualified_factories_and_instances():
    c = Container()
    email, sms = object(), object()
    c.register_instance("notifier", email, qualifier="email")
    c.register_factory("notifier", lambda: sms, qualifier="sms")

    assert c.resolve("notifier", "email") is email
    assert c.resolve("notifier", "sms") is sms
    with pytest.raises(AmbiguousBindingError):
        c.resolve("notifier")
