"""
Scale Repository

Typed access to the document store. Every document read passes through the
normalizers, and every store failure surfaces as an UpstreamError (or a
NotFoundError for updates of missing documents).
"""

import logging
from functools import wraps
from typing import Optional, List, Dict, Any, Callable, TypeVar

from pydantic import BaseModel
from pydantic_core import to_jsonable_python

from src.scale.exceptions import NotFoundError, ScaleError, UpstreamError
from src.scale.models import (
    ClaimRequest,
    ClaimToken,
    Group,
    GroupMember,
    GroupObject,
    Invitation,
    PendingObject,
    Rating,
)
from src.scale.normalization import (
    field_keys,
    matches_fields,
    normalize_claim_request,
    normalize_claim_token,
    normalize_group,
    normalize_invitation,
    normalize_member,
    normalize_object,
    normalize_pending_object,
    normalize_ratings,
)
from src.scale.protocols.store_protocol import DocumentStore, Unsubscribe

logger = logging.getLogger(__name__)

T = TypeVar('T')

GROUPS = "groups"
OBJECTS = "objects"
MEMBERS = "members"
RATINGS = "ratings"
INVITATIONS = "invitations"
CLAIM_REQUESTS = "claim_requests"
CLAIM_TOKENS = "claim_tokens"
PENDING_OBJECTS = "pending_objects"


def store_call(operation: str) -> Callable:
    """Decorator translating store exceptions into the Scale error taxonomy."""
    def decorator(f: Callable) -> Callable:
        @wraps(f)
        def wrapper(self, *args, **kwargs):
            try:
                return f(self, *args, **kwargs)
            except ScaleError:
                raise
            except KeyError as e:
                raise NotFoundError("document", str(e).strip("'"))
            except Exception as e:
                logger.error(f"{operation} failed: {e}")
                raise UpstreamError(operation, e) from e
        return wrapper
    return decorator


def to_document(model: BaseModel) -> Dict[str, Any]:
    return model.model_dump(mode="json")


def to_updates(updates: Dict[str, Any]) -> Dict[str, Any]:
    return to_jsonable_python(updates)


class ScaleRepository:
    """Repository over the external document store."""

    def __init__(self, store: DocumentStore):
        """
        Initialize repository.

        Args:
            store: DocumentStore implementation (in-memory, PostgreSQL, hosted)
        """
        self.store = store

    # --- Generic helpers ---

    def _get(self, collection: str, doc_id: str, normalizer: Callable[[Dict], T]) -> Optional[T]:
        raw = self.store.get(collection, doc_id)
        return normalizer(raw) if raw is not None else None

    def _query(self, collection: str, filters: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """
        Raw documents matching snake_case filters, whatever key spelling they use.

        The store narrows on one field under each of its spellings; the
        union is then matched on every field with ``matches_fields``.
        """
        if not filters:
            return self.store.list(collection, None)
        name, expected = next(iter(filters.items()))
        found: Dict[str, Dict[str, Any]] = {}
        for key in field_keys(name):
            for raw in self.store.list(collection, {key: expected}):
                found.setdefault(str(raw["id"]), raw)
        return [raw for raw in found.values() if matches_fields(raw, filters)]

    def _list(self, collection: str, filters: Optional[Dict[str, Any]], normalizer: Callable[[Dict], T]) -> List[T]:
        return [normalizer(raw) for raw in self._query(collection, filters)]

    def _subscribe(
        self,
        collection: str,
        filters: Dict[str, Any],
        on_docs: Callable[[List[Dict[str, Any]]], None],
    ) -> Unsubscribe:
        # Live queries run unfiltered so legacy-keyed documents are seen too
        def on_snapshot(docs: List[Dict[str, Any]]) -> None:
            on_docs([d for d in docs if matches_fields(d, filters)])
        return self.store.subscribe(collection, None, on_snapshot)

    # --- Groups ---

    @store_call("save group")
    def save_group(self, group: Group) -> Group:
        self.store.create(GROUPS, group.id, to_document(group))
        return group

    @store_call("get group")
    def get_group(self, group_id: str) -> Optional[Group]:
        return self._get(GROUPS, group_id, normalize_group)

    @store_call("list groups")
    def list_groups(self, filters: Optional[Dict[str, Any]] = None) -> List[Group]:
        return self._list(GROUPS, filters, normalize_group)

    @store_call("update group")
    def update_group(self, group_id: str, updates: Dict[str, Any]) -> None:
        self.store.update(GROUPS, group_id, to_updates(updates))

    @store_call("delete group")
    def delete_group(self, group_id: str) -> None:
        self.store.delete(GROUPS, group_id)

    # --- Objects ---

    @store_call("save object")
    def save_object(self, obj: GroupObject) -> GroupObject:
        self.store.create(OBJECTS, obj.id, to_document(obj))
        return obj

    @store_call("get object")
    def get_object(self, object_id: str) -> Optional[GroupObject]:
        return self._get(OBJECTS, object_id, normalize_object)

    @store_call("list objects")
    def list_objects(self, group_id: Optional[str] = None) -> List[GroupObject]:
        filters = {"group_id": group_id} if group_id else None
        return self._list(OBJECTS, filters, normalize_object)

    @store_call("update object")
    def update_object(self, object_id: str, updates: Dict[str, Any]) -> None:
        self.store.update(OBJECTS, object_id, to_updates(updates))

    @store_call("delete object")
    def delete_object(self, object_id: str) -> None:
        self.store.delete(OBJECTS, object_id)

    # --- Members ---

    @store_call("save member")
    def save_member(self, member: GroupMember) -> GroupMember:
        self.store.create(MEMBERS, member.id, to_document(member))
        return member

    @store_call("get member")
    def get_member(self, member_id: str) -> Optional[GroupMember]:
        return self._get(MEMBERS, member_id, normalize_member)

    @store_call("list members")
    def list_members(self, group_id: Optional[str] = None, user_id: Optional[str] = None) -> List[GroupMember]:
        filters = {}
        if group_id:
            filters["group_id"] = group_id
        if user_id:
            filters["user_id"] = user_id
        return self._list(MEMBERS, filters or None, normalize_member)

    @store_call("update member")
    def update_member(self, member_id: str, updates: Dict[str, Any]) -> None:
        self.store.update(MEMBERS, member_id, to_updates(updates))

    @store_call("delete member")
    def delete_member(self, member_id: str) -> None:
        self.store.delete(MEMBERS, member_id)

    # --- Ratings ---

    @store_call("save rating")
    def save_rating(self, rating: Rating) -> Rating:
        self.store.create(RATINGS, rating.id, to_document(rating))
        return rating

    @store_call("list ratings")
    def list_ratings(self, group_id: Optional[str] = None, **filters: Any) -> List[Rating]:
        if group_id:
            filters["group_id"] = group_id
        return normalize_ratings(self._query(RATINGS, filters or None))

    @store_call("find rating")
    def find_ratings(self, group_id: str, metric_id: str, rater_id: str, target_object_id: str) -> List[Rating]:
        return self.list_ratings(
            group_id,
            metric_id=metric_id,
            rater_id=rater_id,
            target_object_id=target_object_id,
        )

    @store_call("update rating")
    def update_rating(self, rating_id: str, updates: Dict[str, Any]) -> None:
        self.store.update(RATINGS, rating_id, to_updates(updates))

    @store_call("delete rating")
    def delete_rating(self, rating_id: str) -> None:
        self.store.delete(RATINGS, rating_id)

    # --- Invitations ---

    @store_call("save invitation")
    def save_invitation(self, invitation: Invitation) -> Invitation:
        self.store.create(INVITATIONS, invitation.id, to_document(invitation))
        return invitation

    @store_call("get invitation")
    def get_invitation(self, invitation_id: str) -> Optional[Invitation]:
        return self._get(INVITATIONS, invitation_id, normalize_invitation)

    @store_call("list invitations")
    def list_invitations(self, **filters: Any) -> List[Invitation]:
        return self._list(INVITATIONS, filters or None, normalize_invitation)

    @store_call("update invitation")
    def update_invitation(self, invitation_id: str, updates: Dict[str, Any]) -> None:
        self.store.update(INVITATIONS, invitation_id, to_updates(updates))

    @store_call("delete invitation")
    def delete_invitation(self, invitation_id: str) -> None:
        self.store.delete(INVITATIONS, invitation_id)

    # --- Claim requests ---

    @store_call("save claim request")
    def save_claim_request(self, request: ClaimRequest) -> ClaimRequest:
        self.store.create(CLAIM_REQUESTS, request.id, to_document(request))
        return request

    @store_call("get claim request")
    def get_claim_request(self, request_id: str) -> Optional[ClaimRequest]:
        return self._get(CLAIM_REQUESTS, request_id, normalize_claim_request)

    @store_call("list claim requests")
    def list_claim_requests(self, **filters: Any) -> List[ClaimRequest]:
        return self._list(CLAIM_REQUESTS, filters or None, normalize_claim_request)

    @store_call("update claim request")
    def update_claim_request(self, request_id: str, updates: Dict[str, Any]) -> None:
        self.store.update(CLAIM_REQUESTS, request_id, to_updates(updates))

    # --- Claim tokens ---

    @store_call("save claim token")
    def save_claim_token(self, token: ClaimToken) -> ClaimToken:
        self.store.create(CLAIM_TOKENS, token.id, to_document(token))
        return token

    @store_call("find claim token")
    def get_claim_token_by_token(self, token: str) -> Optional[ClaimToken]:
        matches = self._list(CLAIM_TOKENS, {"token": token}, normalize_claim_token)
        return matches[0] if matches else None

    @store_call("list claim tokens")
    def list_claim_tokens(self, **filters: Any) -> List[ClaimToken]:
        return self._list(CLAIM_TOKENS, filters or None, normalize_claim_token)

    @store_call("update claim token")
    def update_claim_token(self, token_id: str, updates: Dict[str, Any]) -> None:
        self.store.update(CLAIM_TOKENS, token_id, to_updates(updates))

    @store_call("delete claim token")
    def delete_claim_token(self, token_id: str) -> None:
        self.store.delete(CLAIM_TOKENS, token_id)

    # --- Pending objects ---

    @store_call("save pending object")
    def save_pending_object(self, pending: PendingObject) -> PendingObject:
        self.store.create(PENDING_OBJECTS, pending.id, to_document(pending))
        return pending

    @store_call("get pending object")
    def get_pending_object(self, pending_id: str) -> Optional[PendingObject]:
        return self._get(PENDING_OBJECTS, pending_id, normalize_pending_object)

    @store_call("list pending objects")
    def list_pending_objects(self, **filters: Any) -> List[PendingObject]:
        return self._list(PENDING_OBJECTS, filters or None, normalize_pending_object)

    @store_call("update pending object")
    def update_pending_object(self, pending_id: str, updates: Dict[str, Any]) -> None:
        self.store.update(PENDING_OBJECTS, pending_id, to_updates(updates))

    @store_call("delete pending object")
    def delete_pending_object(self, pending_id: str) -> None:
        self.store.delete(PENDING_OBJECTS, pending_id)

    # --- Raw documents (maintenance) ---

    @store_call("list raw documents")
    def list_raw_documents(self, collection: str, filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Unnormalized documents, for integrity maintenance and migrations."""
        return self._query(collection, filters)

    @store_call("patch raw document")
    def patch_raw_document(self, collection: str, doc_id: str, updates: Dict[str, Any]) -> None:
        self.store.update(collection, doc_id, to_updates(updates))

    @store_call("replace raw document")
    def replace_raw_document(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        self.store.create(collection, doc_id, data)

    # --- Live subscriptions ---

    def subscribe_group(self, group_id: str, callback: Callable[[Optional[Group]], None]) -> Unsubscribe:
        def on_snapshot(docs: List[Dict[str, Any]]) -> None:
            callback(normalize_group(docs[0]) if docs else None)
        return self.store.subscribe(GROUPS, {"id": group_id}, on_snapshot)

    def subscribe_objects(self, group_id: str, callback: Callable[[List[GroupObject]], None]) -> Unsubscribe:
        def on_snapshot(docs: List[Dict[str, Any]]) -> None:
            callback([normalize_object(d) for d in docs])
        return self._subscribe(OBJECTS, {"group_id": group_id}, on_snapshot)

    def subscribe_ratings(self, group_id: str, callback: Callable[[List[Rating]], None]) -> Unsubscribe:
        def on_snapshot(docs: List[Dict[str, Any]]) -> None:
            callback(normalize_ratings(docs))
        return self._subscribe(RATINGS, {"group_id": group_id}, on_snapshot)

    def subscribe_members(self, group_id: str, callback: Callable[[List[GroupMember]], None]) -> Unsubscribe:
        def on_snapshot(docs: List[Dict[str, Any]]) -> None:
            callback([normalize_member(d) for d in docs])
        return self._subscribe(MEMBERS, {"group_id": group_id}, on_snapshot)
