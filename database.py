"""
In-memory document store.

A ``Store`` owns one list of documents per collection, keyed the way the
schemas in schemas.py name them. Documents are plain dicts with a string
ObjectId under ``id``. The API keeps one store per
process; tests build their own and hand it to the app through a dependency
override.
"""
import copy
import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional

from bson import ObjectId

logger = logging.getLogger(__name__)

COLLECTIONS = ("user", "product", "cartitem", "order")


def new_id() -> str:
    return str(ObjectId())


def is_valid_id(value: Any) -> bool:
    return ObjectId.is_valid(value)


class Store:
    def __init__(self):
        self.collections: Dict[str, List[dict]] = {}
        self.order_sequence = 0
        self.reset()

    def reset(self) -> None:
        self.collections = {name: [] for name in COLLECTIONS}
        self.order_sequence = 0

    def __getitem__(self, name: str) -> List[dict]:
        try:
            return self.collections[name]
        except KeyError:
            raise KeyError(f"Unknown collection: {name}") from None

    def next_order_sequence(self) -> int:
        self.order_sequence += 1
        return self.order_sequence

    def create_document(self, collection_name: str, data: dict) -> str:
        now = datetime.now(timezone.utc)
        doc = dict(data)
        doc.setdefault("id", new_id())
        doc.setdefault("created_at", now)
        doc.setdefault("updated_at", now)
        self[collection_name].append(doc)
        logger.debug("Inserted %s into %s", doc["id"], collection_name)
        return doc["id"]

    def get_documents(self, collection_name: str, filter_dict: Optional[dict] = None, limit: Optional[int] = None) -> List[dict]:
        filter_dict = filter_dict or {}
        docs = [
            doc for doc in self[collection_name]
            if all(doc.get(key) == value for key, value in filter_dict.items())
        ]
        if limit is not None:
            docs = docs[:limit]
        return docs

    def find_one(self, collection_name: str, filter_dict: dict) -> Optional[dict]:
        docs = self.get_documents(collection_name, filter_dict, limit=1)
        return docs[0] if docs else None

    def delete_documents(self, collection_name: str, filter_dict: dict) -> int:
        docs = self[collection_name]
        kept = [doc for doc in docs if not all(doc.get(k) == v for k, v in filter_dict.items())]
        deleted = len(docs) - len(kept)
        docs[:] = kept
        return deleted

    def snapshot(self) -> dict:
        return {
            "collections": copy.deepcopy(self.collections),
            "order_sequence": self.order_sequence,
        }

    def restore(self, snapshot: dict) -> None:
        self.collections = snapshot["collections"]
        self.order_sequence = snapshot["order_sequence"]

    @contextmanager
    def transaction(self) -> Iterator["Store"]:
        """Roll every collection back if the block raises."""
        saved = self.snapshot()
        try:
            yield self
        except Exception:
            self.restore(saved)
            logger.warning("Transaction rolled back")
            raise

