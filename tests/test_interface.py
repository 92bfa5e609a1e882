#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Tests for remote interface validation and the declaration decorators.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, List, Optional

import pytest

from easyrmi.core.data.registry import default_registry
from easyrmi.core.interface import (
    ANY_TYPE,
    InterfaceDescriptor,
    lookup_interface,
    register_interface,
    type_descriptor,
)
from easyrmi.core.utils.exceptions import (
    ArgumentError,
    InterfaceShapeError,
    TransportError,
)
from easyrmi.decorators import raises, remote_interface, transmittable


class Account(ABC):
    @abstractmethod
    @raises(TransportError, ValueError)
    def deposit(self, amount: int, memo: str = "") -> int:
        """Add ``amount`` and return the new balance."""

    @abstractmethod
    @raises(TransportError)
    def close(self) -> None: ...

    @abstractmethod
    @raises(TransportError)
    def tags(self, extra: Any, limit: Optional[int]) -> List[str]: ...


class NoTransport(ABC):
    @abstractmethod
    @raises(ValueError)
    def work(self) -> int: ...


class HalfConcrete(ABC):
    @abstractmethod
    @raises(TransportError)
    def remote_part(self) -> int: ...

    def local_part(self) -> int:
        return 1


class KeywordOnly(ABC):
    @abstractmethod
    @raises(TransportError)
    def work(self, *, flag: bool) -> int: ...


class PlainClass:
    def work(self) -> int:
        return 1


class AccountImpl:
    def deposit(self, amount, memo=""):
        return amount

    def close(self):
        return None

    def tags(self, extra, limit):
        return []


def test_descriptor_lists_methods_with_types_and_errors():
    descriptor = InterfaceDescriptor.of(Account)

    assert len(descriptor) == 3
    deposit = descriptor.method("deposit")
    assert deposit.param_names == ("amount", "memo")
    assert deposit.param_types == ("int", "str")
    assert deposit.return_type == "int"
    assert deposit.raises == (TransportError, ValueError)
    assert deposit.doc == "Add ``amount`` and return the new balance."
    assert descriptor.method("close").returns_unit is True
    assert descriptor.method("tags").param_types[0] == ANY_TYPE
    assert ("deposit", ("int", "str")) in descriptor.dispatch_table()


def test_descriptors_are_cached_and_compare_by_class():
    assert InterfaceDescriptor.of(Account) is InterfaceDescriptor.of(Account)
    assert InterfaceDescriptor.of(InterfaceDescriptor.of(Account)) == InterfaceDescriptor.of(Account)
    assert hash(InterfaceDescriptor.of(Account)) == hash(Account)


def test_method_bind_orders_keywords_and_applies_defaults():
    deposit = InterfaceDescriptor.of(Account).method("deposit")

    assert deposit.bind((5,), {}) == (5, "")
    assert deposit.bind((), {"memo": "rent", "amount": 7}) == (7, "rent")
    with pytest.raises(TypeError):
        deposit.bind((1, "a", "extra"), {})


def test_resolve_error_never_matches_transport_error():
    deposit = InterfaceDescriptor.of(Account).method("deposit")

    assert deposit.resolve_error("builtins.ValueError") is ValueError
    assert deposit.resolve_error("easyrmi.core.utils.exceptions.TransportError") is None
    assert deposit.resolve_error("builtins.KeyError") is None


@pytest.mark.parametrize("interface", [NoTransport, HalfConcrete, KeywordOnly, PlainClass, int])
def test_invalid_interfaces_are_rejected(interface):
    with pytest.raises(InterfaceShapeError):
        InterfaceDescriptor.of(interface)


def test_missing_transport_error_message_names_the_rule():
    with pytest.raises(InterfaceShapeError) as exc_info:
        InterfaceDescriptor.of(NoTransport)

    assert "TransportError" in str(exc_info.value)
    assert exc_info.value.context["method"] == "work"


def test_none_interface_is_an_argument_error():
    with pytest.raises(ArgumentError):
        InterfaceDescriptor.of(None)


def test_check_implementation_requires_every_method_with_compatible_arity():
    descriptor = InterfaceDescriptor.of(Account)
    descriptor.check_implementation(AccountImpl())

    class MissingClose:
        def deposit(self, amount, memo=""):
            return amount

        def tags(self, extra, limit):
            return []

    class WrongArity(AccountImpl):
        def deposit(self, amount):
            return amount

    with pytest.raises(InterfaceShapeError):
        descriptor.check_implementation(MissingClose())
    with pytest.raises(InterfaceShapeError):
        descriptor.check_implementation(WrongArity())
    with pytest.raises(ArgumentError):
        descriptor.check_implementation(None)


def test_type_descriptor_mapping():
    assert type_descriptor(int) == "int"
    assert type_descriptor(bytes) == "bytes"
    assert type_descriptor(None) == "None"
    assert type_descriptor(Any) == ANY_TYPE
    assert type_descriptor("Custom") == "Custom"
    assert type_descriptor(Optional[int]) == repr(Optional[int])
    assert type_descriptor(AccountImpl) == "{0}.AccountImpl".format(__name__)


def test_raises_rejects_non_exception_classes_and_merges_declarations():
    with pytest.raises(TypeError):
        raises(int)

    @raises(TransportError)
    @raises(ValueError, TransportError)
    def method(self):
        pass

    assert method.__easyrmi_raises__ == (ValueError, TransportError)


def test_remote_interface_registers_name_for_lookup():
    @remote_interface(name="tests.Ledger")
    class Ledger(ABC):
        @abstractmethod
        @raises(TransportError)
        def balance(self) -> int: ...

    descriptor = lookup_interface("tests.Ledger")
    assert descriptor is not None
    assert descriptor.cls is Ledger
    assert descriptor.wire_name == "tests.Ledger"
    assert type_descriptor(Ledger) == "remote:tests.Ledger"

    class Impostor(ABC):
        @abstractmethod
        @raises(TransportError)
        def balance(self) -> int: ...

    with pytest.raises(ValueError):
        register_interface(Impostor, "tests.Ledger")


def test_remote_interface_bare_form_rejects_bad_interfaces():
    assert remote_interface(Account) is Account
    assert InterfaceDescriptor.of(Account).wire_name == "{0}.Account".format(__name__)

    with pytest.raises(InterfaceShapeError):
        remote_interface(NoTransport)


def test_transmittable_decorator_registers_dataclass():
    @transmittable(name="tests.Money", version=3)
    @dataclass
    class Money:
        cents: int

    entry = default_registry.by_name("tests.Money")
    assert entry.cls is Money
    assert entry.version == 3
    assert entry.field_names == ("cents",)
    assert type_descriptor(Money) == "tests.Money"

    with pytest.raises(TypeError):
        transmittable(PlainClass)
