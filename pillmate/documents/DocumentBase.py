"""Document base class for Firestore operations."""

from typing import Type, Optional, TypeVar, Generic, Any
from pillmate.apis.Db import Db
from pillmate.exceptions import NotFoundError
from pillmate.models.firestore_types import BaseDoc
from pillmate.util.backend_errors import backend_errors

DocLike = TypeVar('DocLike', bound=BaseDoc)


def remove_none_values(d):
    """Recursively remove None values from dictionaries."""
    if isinstance(d, dict):
        return {k: remove_none_values(v) for k, v in d.items() if v is not None}
    elif isinstance(d, list):
        return [remove_none_values(v) for v in d if v is not None]
    else:
        return d


def ignore_none(func):
    """Decorator to remove None values from the data argument."""

    def wrapper(self, data, *args, **kwargs):
        return func(self, remove_none_values(data), *args, **kwargs)

    return wrapper


class DocumentBase(Generic[DocLike]):
    collection_ref: Any = None
    pydantic_model: Type[DocLike] = None  # type: ignore
    resource_type: str = "Document"
    allow_missing: bool = False

    def __init__(self, id: str, doc: Optional[dict] = None, db: Optional[Db] = None):
        """
        Initialize the document.
        :param id: Id of the document.
        :param doc: Already-fetched data; skips the read when given.
        :param db: Database handle, defaults to the singleton.
        """
        self.id = id
        self._db = db
        self._doc: Optional[DocLike] = None
        self.exists = True

        if self.collection_ref is None:
            self.collection_ref = self._resolve_collection()

        if doc is None:
            self._init_doc()  # fetches the document from FB with provided ID
        else:
            self._doc = self.pydantic_model(**doc)

    @property
    def db(self) -> Db:
        if self._db is None:
            self._db = Db.get_instance()
        return self._db

    def _resolve_collection(self):
        raise NotImplementedError("Subclasses must set collection_ref or override _resolve_collection")

    def _init_doc(self):
        with backend_errors(f"read {self.resource_type.lower()} {self.id}"):
            snap = self.collection_ref.document(self.id).get()

        if not snap.exists:
            if not self.allow_missing:
                raise NotFoundError(self.resource_type, self.id)
            self.exists = False
            self._doc = self.pydantic_model()
            return

        self._doc = self.pydantic_model(**(snap.to_dict() or {}))

    @property
    def doc(self) -> DocLike:
        return self._doc

    @ignore_none
    def merge_doc(self, data: dict):
        with backend_errors(f"update {self.resource_type.lower()} {self.id}"):
            self.collection_ref.document(self.id).set(data, merge=True)
        self._doc = self.pydantic_model(**{**self._doc.model_dump(), **data})
        self.exists = True

    def get_doc_ref(self):
        return self.collection_ref.document(self.id)
