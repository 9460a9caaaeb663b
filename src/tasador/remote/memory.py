"""
In-Memory Document Store

Dict-backed store used for tests and offline sessions. Atomic applies stage
every write on a copy of the data and swap it in only when all succeed.
"""

import copy
from typing import Any, Dict, List, Optional, Set

from tasador.exceptions import NotFoundError
from tasador.remote.base import DocumentStore, WriteOp, merge_documents, split_path


class MemoryDocumentStore(DocumentStore):
    """Document store that lives in the current process."""

    def __init__(self, documents: Optional[Dict[str, Dict[str, Any]]] = None):
        super().__init__()
        self._documents: Dict[str, Dict[str, Any]] = copy.deepcopy(documents or {})

    def _read(self, path: str) -> Optional[Dict[str, Any]]:
        data = self._documents.get(path)
        return copy.deepcopy(data) if data is not None else None

    def _read_collection(self, collection: str) -> Dict[str, Dict[str, Any]]:
        return {
            path: copy.deepcopy(data)
            for path, data in self._documents.items()
            if split_path(path)[0] == collection
        }

    def _apply(self, ops: List[WriteOp]) -> Set[str]:
        staged = copy.deepcopy(self._documents)
        affected: Set[str] = set()
        for op in ops:
            affected |= self._apply_op(staged, op)
        self._documents = staged
        return affected

    def _apply_op(self, documents: Dict[str, Dict[str, Any]], op: WriteOp) -> Set[str]:
        if op.kind == "set":
            if op.merge and op.path in documents:
                documents[op.path] = merge_documents(documents[op.path], op.data)
            else:
                documents[op.path] = copy.deepcopy(op.data)
            return {op.path}

        if op.kind == "update":
            if op.path not in documents:
                raise NotFoundError(f"No document to update: {op.path}", path=op.path)
            documents[op.path] = merge_documents(documents[op.path], op.data)
            return {op.path}

        if op.kind == "delete":
            documents.pop(op.path, None)
            return {op.path}

        if op.kind == "delete_collection":
            removed = {p for p in documents if split_path(p)[0] == op.path}
            for path in removed:
                del documents[path]
            return removed

        raise ValueError(f"Unknown write kind: {op.kind}")

    def dump(self) -> Dict[str, Dict[str, Any]]:
        """Copy of every stored document keyed by path."""
        return copy.deepcopy(self._documents)
