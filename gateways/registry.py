"""
Method/country routing.

The registry holds one adapter instance per payment method. Availability is
a pure function of each adapter's static country set; nothing here does I/O.
"""

from collections.abc import Iterable, Mapping

import httpx

from gateways.base import GatewayAdapter, MethodDescriptor
from gateways.config import (
    GatewaySettings,
    KoraPaySettings,
    MTNSettings,
    OrangeSettings,
    PayFastSettings,
    PayGateSettings,
)
from gateways.errors import UnknownWebhookSource, UnsupportedMethod
from gateways.korapay import KoraPayAdapter
from gateways.mtn import MTNMobileMoneyAdapter
from gateways.orange import OrangeMoneyAdapter
from gateways.payfast import PayFastAdapter
from gateways.paygate import PayGateAdapter


class GatewayRegistry:
    def __init__(self, adapters: Iterable[GatewayAdapter]) -> None:
        self._adapters: dict[str, GatewayAdapter] = {}
        for adapter in adapters:
            if adapter.method_id in self._adapters:
                raise ValueError(f"Duplicate payment method {adapter.method_id!r}")
            self._adapters[adapter.method_id] = adapter

    def __iter__(self):
        return iter(self._adapters.values())

    def get(self, method_id: str) -> GatewayAdapter:
        """Adapter by method id, regardless of country (used for stored payments)."""
        try:
            return self._adapters[method_id]
        except KeyError:
            raise UnsupportedMethod(method_id, None) from None

    def resolve(self, method_id: str, country: str | None) -> GatewayAdapter:
        adapter = self._adapters.get(method_id)
        if adapter is None or not adapter.is_available_in(country):
            raise UnsupportedMethod(method_id, country)
        return adapter

    def list_available_methods(self, country: str | None) -> list[MethodDescriptor]:
        return [adapter.descriptor for adapter in self._adapters.values() if adapter.is_available_in(country)]

    def for_webhook(self, headers: Mapping[str, str]) -> GatewayAdapter:
        """Pick the adapter whose marker header is present on the inbound request."""
        lowered = {key.lower() for key in headers}
        for adapter in self._adapters.values():
            if adapter.webhook_header in lowered:
                return adapter
        raise UnknownWebhookSource("No payment provider marker header on webhook request")


def build_registry(
    client: httpx.AsyncClient,
    common: GatewaySettings | None = None,
    *,
    kora: KoraPaySettings | None = None,
    paygate: PayGateSettings | None = None,
    payfast: PayFastSettings | None = None,
    mtn: MTNSettings | None = None,
    orange: OrangeSettings | None = None,
) -> GatewayRegistry:
    """Construct every adapter once; each reads its own settings block unless one is passed in."""
    common = common or GatewaySettings()
    return GatewayRegistry(
        [
            PayGateAdapter(paygate or PayGateSettings(), common, client),
            PayFastAdapter(payfast or PayFastSettings(), common, client),
            OrangeMoneyAdapter(orange or OrangeSettings(), common, client),
            MTNMobileMoneyAdapter(mtn or MTNSettings(), common, client),
            KoraPayAdapter(kora or KoraPaySettings(), common, client),
        ]
    )
