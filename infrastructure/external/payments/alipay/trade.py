"""
Trade lifecycle operations: query, cancel, close, refund and refund query.

Auxiliary parameters are validated for the operation before anything is
signed or sent.
"""
from __future__ import annotations

from infrastructure.external.payments.alipay import constants as C
from infrastructure.external.payments.alipay.engine import AlipayEngine
from infrastructure.external.payments.alipay.models import Auxiliary, AuxiliaryKind, Notify


_METHODS = {
    AuxiliaryKind.QUERY: C.QUERY,
    AuxiliaryKind.CANCEL: C.CANCEL,
    AuxiliaryKind.CLOSE: C.CLOSE,
    AuxiliaryKind.REFUND: C.REFUND,
    AuxiliaryKind.REFUND_QUERY: C.REFUND_QUERY,
}


class TradeOperations:
    def __init__(self, engine: AlipayEngine) -> None:
        self.engine = engine

    async def _commit(self, kind: AuxiliaryKind, auxiliary: Auxiliary) -> Notify:
        auxiliary.validate_for(kind)
        return await self.engine.commit(_METHODS[kind], auxiliary.to_biz_content())

    async def query(self, auxiliary: Auxiliary) -> Notify:
        return await self._commit(AuxiliaryKind.QUERY, auxiliary)

    async def cancel(self, auxiliary: Auxiliary) -> Notify:
        return await self._commit(AuxiliaryKind.CANCEL, auxiliary)

    async def close(self, auxiliary: Auxiliary) -> Notify:
        return await self._commit(AuxiliaryKind.CLOSE, auxiliary)

    async def refund(self, auxiliary: Auxiliary) -> Notify:
        return await self._commit(AuxiliaryKind.REFUND, auxiliary)

    async def refund_query(self, auxiliary: Auxiliary) -> Notify:
        return await self._commit(AuxiliaryKind.REFUND_QUERY, auxiliary)
