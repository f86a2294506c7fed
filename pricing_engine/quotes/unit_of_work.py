"""
Unit of Work

Stages record creates for a single atomic commit. Every intent lives in an
arena indexed by an integer handle; a dependent intent stores its parent's
handle and the reference is only rendered into a placeholder when the batch
is serialized for the composite graph call.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any
from uuid import uuid4

from pricing_engine.kernel.errors import InvalidReferenceError


@dataclass(frozen=True)
class ReferenceToken:
    """Handle of a staged intent, usable before the record has an id."""

    handle: int
    batch_id: str = ""

    @property
    def reference_id(self) -> str:
        return f"ref{self.handle}"

    def to_api_string(self) -> str:
        return f"@{{{self.reference_id}.id}}"


@dataclass
class BatchIntent:
    handle: int
    batch_id: str
    sobject_type: str
    fields: dict[str, Any]
    parent_handle: int | None = None
    reference_field: str | None = None

    @property
    def token(self) -> ReferenceToken:
        return ReferenceToken(self.handle, self.batch_id)


@dataclass
class UnitOfWork:
    batch_id: str = field(default_factory=lambda: uuid4().hex)
    _intents: list[BatchIntent] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self._intents)

    @property
    def intents(self) -> tuple[BatchIntent, ...]:
        return tuple(self._intents)

    def register_create(
        self,
        sobject_type: str,
        fields: dict[str, Any],
        *,
        parent: ReferenceToken | None = None,
        reference_field: str | None = None,
    ) -> ReferenceToken:
        if parent is not None:
            if not self._owns(parent):
                raise InvalidReferenceError(
                    message=f"Parent reference {parent.reference_id} is not part of this unit of work",
                    meta={"handle": parent.handle, "sobject_type": sobject_type},
                )
            if not reference_field:
                raise InvalidReferenceError(
                    message=f"A {sobject_type} child needs a reference field for its parent",
                    meta={"handle": parent.handle, "sobject_type": sobject_type},
                )

        intent = BatchIntent(
            handle=len(self._intents),
            batch_id=self.batch_id,
            sobject_type=sobject_type,
            fields=dict(fields),
            parent_handle=parent.handle if parent is not None else None,
            reference_field=reference_field if parent is not None else None,
        )
        self._intents.append(intent)
        return intent.token

    def register_parent(self, sobject_type: str, fields: dict[str, Any]) -> ReferenceToken:
        return self.register_create(sobject_type, fields)

    def register_child(
        self,
        parent: ReferenceToken,
        sobject_type: str,
        fields: dict[str, Any],
        *,
        reference_field: str,
    ) -> ReferenceToken:
        return self.register_create(
            sobject_type,
            fields,
            parent=parent,
            reference_field=reference_field,
        )

    def to_composite_requests(self, api_path: str) -> list[dict[str, Any]]:
        """Serialize intents as composite subrequests in registration order."""
        requests: list[dict[str, Any]] = []
        for intent in self._intents:
            body = dict(intent.fields)
            if intent.parent_handle is not None:
                body[intent.reference_field] = ReferenceToken(intent.parent_handle, self.batch_id).to_api_string()
            requests.append(
                {
                    "method": "POST",
                    "url": f"{api_path}/sobjects/{intent.sobject_type}",
                    "referenceId": intent.token.reference_id,
                    "body": body,
                }
            )
        return requests

    def to_graphs(self, api_path: str, *, per_root: bool = False) -> list[dict[str, Any]]:
        """
        Group subrequests into composite graphs.

        By default the whole unit of work is one graph, so it commits or rolls
        back as a whole. With `per_root` every parent intent and its
        descendants form their own graph.
        """
        requests = self.to_composite_requests(api_path)
        if not requests:
            return []
        if not per_root:
            return [{"graphId": "g0", "compositeRequest": requests}]

        roots: dict[int, int] = {}
        grouped: dict[int, list[dict[str, Any]]] = {}
        for intent, request in zip(self._intents, requests):
            root = intent.handle if intent.parent_handle is None else roots[intent.parent_handle]
            roots[intent.handle] = root
            grouped.setdefault(root, []).append(request)
        return [{"graphId": f"g{root}", "compositeRequest": nodes} for root, nodes in grouped.items()]

    def _owns(self, token: ReferenceToken) -> bool:
        return token.batch_id == self.batch_id and 0 <= token.handle < len(self._intents)
