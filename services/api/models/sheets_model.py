# services/api/models/sheets_model.py
from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence

from core.store import Document, SheetsDatabase
from .collections import COLLECTION_NAMES


class SheetsModel:
    """
    MongoDB-model-style access to one collection (sheet tab).

    Thin wrapper over SheetsDatabase: everything is read through the row
    cache, `*_by_id` writes force-refresh and invalidate.
    """

    def __init__(self, collection_name: str, db: SheetsDatabase) -> None:
        self.collection_name = collection_name
        self.db = db

    def __repr__(self) -> str:
        return f"SheetsModel({self.collection_name!r})"

    async def find(self, query: Optional[Mapping[str, Any]] = None) -> List[Document]:
        return await self.db.find(self.collection_name, query)

    async def find_one(self, query: Optional[Mapping[str, Any]] = None) -> Optional[Document]:
        results = await self.db.find(self.collection_name, query)
        return results[0] if results else None

    async def find_by_id(self, doc_id: Any) -> Optional[Document]:
        return await self.db.find_by_id(self.collection_name, doc_id)

    async def create(self, data: Mapping[str, Any]) -> Document:
        return await self.db.create(self.collection_name, data)

    async def update_by_id(self, doc_id: Any, update: Mapping[str, Any]) -> Optional[Document]:
        return await self.db.update_by_id(self.collection_name, doc_id, update)

    # mongoose spelling
    find_by_id_and_update = update_by_id

    async def delete_by_id(self, doc_id: Any) -> bool:
        return await self.db.delete_by_id(self.collection_name, doc_id)

    async def find_by_id_and_delete(self, doc_id: Any) -> Optional[Dict[str, Any]]:
        """Delete by id; returns {"_id": doc_id} when a row was removed, else None."""
        deleted = await self.db.delete_by_id(self.collection_name, doc_id)
        return {"_id": doc_id} if deleted else None

    async def update_one(self, query: Mapping[str, Any], update: Mapping[str, Any]) -> Optional[Document]:
        """Update the first document matching `query` (sheet order)."""
        items = await self.db.find(self.collection_name, query)
        if items and items[0].get("_id"):
            return await self.db.update_by_id(self.collection_name, items[0]["_id"], update)
        return None

    async def delete_one(self, query: Mapping[str, Any]) -> bool:
        items = await self.db.find(self.collection_name, query)
        if items and items[0].get("_id"):
            return await self.db.delete_by_id(self.collection_name, items[0]["_id"])
        return False

    async def count_documents(self, query: Optional[Mapping[str, Any]] = None) -> int:
        return len(await self.db.find(self.collection_name, query))

    async def aggregate(self, pipeline: Sequence[Mapping[str, Any]]) -> List[Document]:
        return await self.db.aggregate(self.collection_name, pipeline)


class Models:
    """
    One SheetsModel per application collection, as attributes:

        models = Models(db)
        phong = await models.Phong.find_by_id(phong_id)
    """

    NguoiDung: SheetsModel
    ToaNha: SheetsModel
    Phong: SheetsModel
    KhachThue: SheetsModel
    HopDong: SheetsModel
    ChiSoDienNuoc: SheetsModel
    HoaDon: SheetsModel
    ThanhToan: SheetsModel
    SuCo: SheetsModel
    ThongBao: SheetsModel

    def __init__(self, db: SheetsDatabase) -> None:
        self.db = db
        self._models: Dict[str, SheetsModel] = {}
        for name in COLLECTION_NAMES:
            model = SheetsModel(name, db)
            self._models[name] = model
            setattr(self, name, model)

    def __getitem__(self, collection_name: str) -> SheetsModel:
        """Model for any collection name, catalogued or not."""
        model = self._models.get(collection_name)
        if model is None:
            model = SheetsModel(collection_name, self.db)
            self._models[collection_name] = model
        return model

    def __iter__(self):
        return iter(self._models.values())
