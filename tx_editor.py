from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from api_client import ApiClient
from schemas import (
    RecurringScope,
    TransactionIn,
    TransactionPrefill,
    TransactionRecord,
)

logger = logging.getLogger(__name__)

Listener = Callable[["TransactionEditor"], None]


class TransactionEditor:
    """Shared create/edit transaction form state.

    Screens receive the editor explicitly and call ``open_create`` or
    ``open_edit``; subscribers are told about every state change so they can
    refetch once the editor closes.
    """

    def __init__(self, client: ApiClient) -> None:
        self.client = client
        self.visible = False
        self.mode: Optional[str] = None
        self.prefill: Optional[TransactionPrefill] = None
        self.editing: Optional[TransactionRecord] = None
        self._listeners: list[Listener] = []

    @property
    def editing_id(self) -> Optional[int]:
        return self.editing.id if self.editing else None

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    def open_create(self, prefill: Optional[TransactionPrefill] = None) -> None:
        self.visible = True
        self.mode = "create"
        self.prefill = prefill or TransactionPrefill()
        self.editing = None
        self._notify()

    def open_edit(self, record: TransactionRecord) -> None:
        if record.id is None:
            raise ValueError("Cannot edit a transaction without an id")
        self.visible = True
        self.mode = "edit"
        self.prefill = TransactionPrefill(
            wallet_id=record.wallet_id, type=record.type, date=record.date
        )
        self.editing = record
        self._notify()

    def close(self) -> None:
        self.visible = False
        self.mode = None
        self.prefill = None
        self.editing = None
        self._notify()

    def needs_scope(self) -> bool:
        """Edits of recurring instances must say which occurrences they touch."""
        return bool(
            self.editing
            and (self.editing.parent_id is not None or self.editing.is_recurring)
        )

    def submit(
        self, payload: TransactionIn, scope: Optional[RecurringScope] = None
    ) -> Any:
        if not self.visible:
            raise ValueError("Transaction editor is not open")
        body = payload.to_api()
        if self.mode == "edit" and self.editing_id is not None:
            if scope is None and self.needs_scope():
                scope = RecurringScope.single
            result = self.client.update_transaction(self.editing_id, body, scope)
            logger.info(
                f"transaction_updated: id={self.editing_id} "
                f"scope={scope.value if scope else None}"
            )
        else:
            result = self.client.create_transaction(body)
            logger.info(f"transaction_created: type={payload.type.value}")
        self.close()
        return result

    def delete(
        self, transaction_id: int, scope: Optional[RecurringScope] = None
    ) -> Any:
        result = self.client.delete_transaction(transaction_id, scope)
        logger.info(
            f"transaction_deleted: id={transaction_id} "
            f"scope={scope.value if scope else None}"
        )
        if self.editing_id == transaction_id:
            self.close()
        else:
            self._notify()
        return result
