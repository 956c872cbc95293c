# app/database.py

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from azure.core import MatchConditions
from azure.cosmos import CosmosClient
from azure.cosmos.exceptions import CosmosAccessConditionFailedError, CosmosResourceNotFoundError

from app.config import (
    COSMOS_CONNECTION_STRING,
    DATABASE_NAME,
    USERS_CONTAINER,
    PLANNERS_CONTAINER,
    RECORDS_CONTAINER,
    MAX_BATCH_OPERATIONS,
    CONDITIONAL_WRITE_ATTEMPTS,
)
from app.errors import ConflictError

logger = logging.getLogger(__name__)

QUERY_OPERATORS = ("=", "!=", "<", "<=", ">", ">=")

# (field, operator, value), or a list of condition groups that are OR-ed together
Condition = Union[Tuple[str, str, Any], List[List[Tuple[str, str, Any]]]]
# (field, "ASC" | "DESC")
Ordering = Tuple[str, str]


class CosmosStore:
    """
    Thin wrapper over a Cosmos container.
    Every document carries a 'docType' so several kinds can share one container.
    """

    def __init__(self, container):
        self.container = container

    def get(self, doc_id: str, partition_key: str) -> Optional[dict]:
        try:
            return self.container.read_item(item=doc_id, partition_key=partition_key)
        except CosmosResourceNotFoundError:
            return None

    def query(
        self,
        doc_type: str,
        where: Optional[Sequence[Condition]] = None,
        order_by: Optional[Sequence[Ordering]] = None,
        limit: Optional[int] = None,
        partition_key: Optional[str] = None,
    ) -> List[dict]:
        query, parameters = build_query(doc_type, where, order_by, limit)
        kwargs: Dict[str, Any] = {}
        if partition_key is not None:
            kwargs["partition_key"] = partition_key
        else:
            kwargs["enable_cross_partition_query"] = True
        return list(self.container.query_items(query=query, parameters=parameters, **kwargs))

    def create(self, doc: dict) -> dict:
        return self.container.create_item(body=doc)

    def upsert(self, doc: dict) -> dict:
        return self.container.upsert_item(body=doc)

    def replace(self, doc: dict, etag: Optional[str] = None) -> dict:
        """Replace a document; with an etag the write fails if the stored copy changed."""
        if etag:
            return self.container.replace_item(
                item=doc["id"], body=doc, etag=etag, match_condition=MatchConditions.IfNotModified
            )
        return self.container.replace_item(item=doc["id"], body=doc)

    def delete(self, doc_id: str, partition_key: str) -> None:
        self.container.delete_item(item=doc_id, partition_key=partition_key)

    def execute_batch(self, partition_key: str, operations: Iterable[Tuple[str, Any]]) -> None:
        """
        Runs ('create' | 'upsert' | 'replace', doc) and ('delete', doc_id) operations
        as one transactional batch: either all of them apply or none do.
        """
        batch = []
        for kind, arg in operations:
            if kind in ("create", "upsert"):
                batch.append((kind, (arg,)))
            elif kind == "replace":
                batch.append((kind, (arg["id"], arg)))
            elif kind == "delete":
                batch.append((kind, (arg,)))
            else:
                raise ValueError(f"Unsupported batch operation: {kind}")
        if not batch:
            return
        if len(batch) > MAX_BATCH_OPERATIONS:
            raise ValueError(f"A batch holds at most {MAX_BATCH_OPERATIONS} operations")
        self.container.execute_item_batch(batch_operations=batch, partition_key=partition_key)


def conditional_update(
    store: CosmosStore,
    load: Callable[[], dict],
    mutate: Callable[[dict], Optional[bool]],
    attempts: int = CONDITIONAL_WRITE_ATTEMPTS,
) -> dict:
    """
    Read-modify-write guarded by the document's etag. `load` re-reads the document
    on every attempt and `mutate` changes it in place; a `mutate` that returns False
    leaves nothing to write. Gives up with ConflictError after `attempts` lost races.
    """
    for attempt in range(1, attempts + 1):
        doc = load()
        if mutate(doc) is False:
            return doc
        try:
            return store.replace(doc, etag=doc.get("_etag"))
        except CosmosAccessConditionFailedError:
            logger.warning("Document '%s' changed while being updated (attempt %s)", doc["id"], attempt)
    raise ConflictError("The document was changed concurrently, please retry")


def build_query(
    doc_type: str,
    where: Optional[Sequence[Condition]] = None,
    order_by: Optional[Sequence[Ordering]] = None,
    limit: Optional[int] = None,
) -> Tuple[str, List[dict]]:
    """
    Builds a parameterized Cosmos SQL query from field conditions. A condition given
    as a list of groups becomes one OR clause whose groups are AND-ed internally.
    """
    clauses = ["c.docType = @docType"]
    parameters = [{"name": "@docType", "value": doc_type}]

    def term(field, operator, value):
        if operator not in QUERY_OPERATORS:
            raise ValueError(f"Unsupported operator: {operator}")
        name = f"@p{len(parameters) - 1}"
        parameters.append({"name": name, "value": value})
        return f"c.{field} {operator} {name}"

    for condition in where or []:
        if isinstance(condition, tuple):
            clauses.append(term(*condition))
        else:
            groups = ["(" + " AND ".join(term(*c) for c in group) + ")" for group in condition]
            clauses.append("(" + " OR ".join(groups) + ")")

    select = "SELECT *"
    if limit is not None:
        select = "SELECT TOP @limit *"
        parameters.append({"name": "@limit", "value": int(limit)})

    query = f"{select} FROM c WHERE " + " AND ".join(clauses)
    if order_by:
        query += " ORDER BY " + ", ".join(f"c.{field} {direction}" for field, direction in order_by)
    return query, parameters


_client = None
_stores: Dict[str, CosmosStore] = {}


def _get_database():
    global _client
    if _client is None:
        if not COSMOS_CONNECTION_STRING:
            raise RuntimeError("COSMOS_CONNECTION_STRING is not configured")
        _client = CosmosClient.from_connection_string(COSMOS_CONNECTION_STRING)
        logger.info("Connected to Cosmos DB database '%s'", DATABASE_NAME)
    return _client.get_database_client(DATABASE_NAME)


def get_store(container_name: str) -> CosmosStore:
    store = _stores.get(container_name)
    if store is None:
        store = CosmosStore(_get_database().get_container_client(container_name))
        _stores[container_name] = store
    return store


def users() -> CosmosStore:
    return get_store(USERS_CONTAINER)


def planners() -> CosmosStore:
    return get_store(PLANNERS_CONTAINER)


def records() -> CosmosStore:
    return get_store(RECORDS_CONTAINER)
