"""
Drawing Database & Transactions
===============================
This module defines the in-memory drawing database that owns all entities.

Why is this file needed?
------------------------
1. Ownership: Entities and polyline vertices live in an id table and are
   referenced by ObjectId, so sub-objects can be shared by handle.
2. Transactions: Objects are opened for read or write through a
   Transaction; write access is rolled back unless the transaction commits.
3. Working database: A process-wide default database for helpers that are
   given an object but no database.

Classes:
    ObjectId: Handle of a database-resident object.
    OpenMode: Access requested when opening an object.
    Database: The id table and drawing defaults.
    TransactionManager: Stack of active transactions of one database.
    Transaction: Scoped access to database objects.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging
from typing import Any, Dict, Iterator, List, Optional, TYPE_CHECKING

from cadutilities.config import DEFAULT_DRAWING_DEFAULTS, DrawingDefaults
from cadutilities.model.errors import InvalidInputError, ObjectNotFoundError, TransactionClosedError

if TYPE_CHECKING:
    from cadutilities.model.entities import DBObject

logger = logging.getLogger(__name__)


@dataclass(frozen=True, order=True)
class ObjectId:
    handle: int

    def __str__(self) -> str:
        return f"{self.handle:X}"


class OpenMode(Enum):
    FOR_READ = "read"
    FOR_WRITE = "write"


class Database:
    """
    In-memory drawing database.

    Args:
        defaults: Entity property defaults applied by `set_database_defaults`.
    """

    def __init__(self, defaults: DrawingDefaults = DEFAULT_DRAWING_DEFAULTS) -> None:
        self.defaults = defaults
        self._objects: Dict[int, DBObject] = {}
        self._next_handle: int = 1
        self.transaction_manager = TransactionManager(self)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(objects={len(self._objects)})"

    def __contains__(self, object_id: ObjectId) -> bool:
        obj = self._objects.get(object_id.handle)
        return obj is not None and not obj.is_erased

    def add(self, obj: DBObject) -> ObjectId:
        """
        Make `obj` database-resident and return its new ObjectId.

        Raises:
            InvalidInputError: If `obj` already belongs to a database.
        """
        if obj.is_resident:
            raise InvalidInputError(f"{obj!r} is already database-resident.")

        object_id = ObjectId(self._next_handle)
        self._next_handle += 1
        self._attach(obj, object_id)
        transaction = self.transaction_manager.top_transaction
        if transaction is not None:
            transaction._added.append(object_id.handle)
        logger.debug(f"Added {obj.__class__.__name__} with handle {object_id}")
        return object_id

    @property
    def handseed(self) -> int:
        """Next handle to be assigned; handles are never reused."""
        return self._next_handle

    @handseed.setter
    def handseed(self, value: int) -> None:
        self._next_handle = max(self._next_handle, int(value))

    def _attach(self, obj: DBObject, object_id: ObjectId) -> None:
        self._objects[object_id.handle] = obj
        self._next_handle = max(self._next_handle, object_id.handle + 1)
        obj._set_database(self, object_id)

    def _discard(self, object_id: ObjectId) -> None:
        self._objects[object_id.handle]._detach()
        del self._objects[object_id.handle]

    def restore(self, obj: DBObject, object_id: ObjectId) -> None:
        """Insert `obj` under an existing handle (used when loading a drawing)."""
        if object_id.handle in self._objects:
            raise InvalidInputError(f"Handle {object_id} is already in use.")
        self._attach(obj, object_id)

    def get(self, object_id: ObjectId, open_erased: bool = False) -> DBObject:
        """
        Resolve an id without opening the object.

        Raises:
            ObjectNotFoundError: If the id is unknown, or erased and `open_erased` is False.
        """
        obj = self._objects.get(object_id.handle)
        if obj is None:
            raise ObjectNotFoundError(f"No object with handle {object_id} in {self!r}.")
        if obj.is_erased and not open_erased:
            raise ObjectNotFoundError(f"Object with handle {object_id} was erased.")
        return obj

    def object_ids(self, include_erased: bool = False) -> Iterator[ObjectId]:
        for handle, obj in self._objects.items():
            if include_erased or not obj.is_erased:
                yield ObjectId(handle)

    def entity_ids(self) -> List[ObjectId]:
        """Ids of the top-level entities (vertices and other sub-objects excluded)."""
        from cadutilities.model.entities import Entity

        return [
            ObjectId(handle) for handle, obj in self._objects.items()
            if isinstance(obj, Entity) and obj.owner_id is None and not obj.is_erased
        ]


class TransactionManager:
    """Keeps the stack of active transactions of a database."""

    def __init__(self, database: Database) -> None:
        self.database = database
        self._stack: List[Transaction] = []

    @property
    def top_transaction(self) -> Optional[Transaction]:
        return self._stack[-1] if self._stack else None

    @property
    def number_of_active_transactions(self) -> int:
        return len(self._stack)

    def start_transaction(self) -> Transaction:
        transaction = Transaction(self)
        self._stack.append(transaction)
        logger.debug(f"Transaction started (depth {len(self._stack)}).")
        return transaction

    def _pop(self, transaction: Transaction) -> None:
        if self.top_transaction is not transaction:
            raise TransactionClosedError("Only the top transaction can be ended.")
        self._stack.pop()


class Transaction:
    """
    Scoped access to database objects.

    Leaving a ``with`` block disposes the transaction; changes made to
    objects opened for write are rolled back unless `commit` was called.
    """

    def __init__(self, manager: TransactionManager) -> None:
        self._manager = manager
        # handle -> state captured when first opened for write in this transaction
        self._snapshots: Dict[int, Dict[str, Any]] = {}
        # handle -> open mode the object had before this transaction touched it
        self._previous_modes: Dict[int, Optional[OpenMode]] = {}
        # handles added to the database while this was the top transaction
        self._added: List[int] = []
        self._active = True

    def __enter__(self) -> Transaction:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.dispose()

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def database(self) -> Database:
        return self._manager.database

    def _check_active(self) -> None:
        if not self._active:
            raise TransactionClosedError("Transaction has already been ended.")

    def get_object(self, object_id: ObjectId, mode: OpenMode, open_erased: bool = False) -> DBObject:
        """
        Open a database-resident object.

        Args:
            object_id: Id of the object.
            mode: FOR_READ or FOR_WRITE. Opening for write allows modification
                and snapshots the object for rollback.
            open_erased: Also return erased objects.

        Raises:
            TransactionClosedError: If the transaction was ended.
            ObjectNotFoundError: If the id cannot be resolved.
        """
        self._check_active()
        obj = self.database.get(object_id, open_erased=open_erased)
        handle = object_id.handle

        if handle not in self._previous_modes:
            self._previous_modes[handle] = obj.open_mode

        if mode == OpenMode.FOR_WRITE:
            if handle not in self._snapshots:
                self._snapshots[handle] = obj._snapshot()
            obj._open_mode = OpenMode.FOR_WRITE
        elif obj.open_mode != OpenMode.FOR_WRITE:
            obj._open_mode = OpenMode.FOR_READ
        return obj

    def commit(self) -> None:
        self._check_active()
        self._manager._pop(self)
        parent = self._manager.top_transaction
        if parent is not None:
            # The enclosing transaction can still roll these changes back
            for handle, state in self._snapshots.items():
                parent._snapshots.setdefault(handle, state)
            parent._added.extend(self._added)
        self._finish()
        logger.debug(f"Transaction committed ({len(self._snapshots)} objects written).")

    def abort(self) -> None:
        """End the transaction, restoring written objects and removing added ones."""
        self._check_active()
        self._manager._pop(self)
        added = set(self._added)
        for handle, state in self._snapshots.items():
            if handle not in added:
                self.database.get(ObjectId(handle), open_erased=True)._restore(state)
        # Owners before their sub-objects, which were added first
        for handle in reversed(self._added):
            self._previous_modes.pop(handle, None)
            self.database._discard(ObjectId(handle))
        self._finish()
        logger.debug(
            f"Transaction aborted ({len(self._snapshots)} objects rolled back, {len(added)} removed)."
        )

    def dispose(self) -> None:
        """End the transaction; aborts it when it was not committed."""
        if self._active:
            self.abort()

    def _finish(self) -> None:
        for handle, previous in self._previous_modes.items():
            self.database.get(ObjectId(handle), open_erased=True)._open_mode = previous
        self._active = False


_working_database: Optional[Database] = None


def working_database() -> Database:
    """The process-wide working database, created on first use."""
    global _working_database
    if _working_database is None:
        _working_database = Database()
        logger.debug("Created working database.")
    return _working_database


def set_working_database(database: Optional[Database]) -> None:
    global _working_database
    _working_database = database
