"""
Property store abstraction and its SQLAlchemy implementation
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple
import enum
import uuid
from sqlalchemy import func, insert, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from core.exceptions import BatchInsertError, DatabaseError
from models.base import ListingStatus
from models.property import Property
import logging

logger = logging.getLogger(__name__)


class PropertyFilter(str, enum.Enum):
    """Named filters for store-side counts"""
    ALL = "all"
    WITH_EXTERNAL_ID = "with_external_id"
    WITH_PRIMARY_IMAGE = "with_primary_image"
    WITH_GALLERY = "with_gallery"
    PUBLISHED = "published"


class PropertyStore(ABC):
    """
    Relational property store consumed by the migration.

    The store enforces uniqueness of external_id and nothing else; every
    business rule is checked before a record reaches it.
    """

    @abstractmethod
    async def find_by_external_id(self, external_id: str) -> Optional[Any]:
        """Return the stored record for external_id, or None"""
        pass

    @abstractmethod
    async def insert(self, record: Dict[str, Any]) -> str:
        """Insert one record and return its generated ID"""
        pass

    @abstractmethod
    async def insert_batch(self, records: List[Dict[str, Any]]) -> List[Tuple[str, str]]:
        """
        Insert records atomically.

        Returns:
            (id, external_id) pairs in input order

        Raises:
            BatchInsertError: If any record is rejected; nothing is written
        """
        pass

    @abstractmethod
    async def update_images(
        self,
        property_id: str,
        primary_image_url: Optional[str],
        gallery_image_urls: Optional[List[str]]
    ) -> bool:
        pass

    @abstractmethod
    async def count(self, property_filter: PropertyFilter = PropertyFilter.ALL) -> int:
        pass

    @abstractmethod
    async def list_missing_primary_image(self, limit: int) -> List[Tuple[str, str]]:
        """(id, external_id) of records without a primary image, oldest first"""
        pass


class SQLAlchemyPropertyStore(PropertyStore):
    """PropertyStore backed by the properties table through an AsyncSession"""

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    async def find_by_external_id(self, external_id: str) -> Optional[Property]:
        try:
            result = await self.db.execute(
                select(Property).where(Property.external_id == external_id)
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise DatabaseError(
                "Failed to look up property by external_id",
                context={"operation": "SELECT", "table_name": "properties", "external_id": external_id},
                original_exception=e
            )

    async def insert(self, record: Dict[str, Any]) -> str:
        values = self._to_row(record)
        try:
            await self.db.execute(insert(Property), [values])
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise DatabaseError(
                f"Insert failed: {self._reason(e)}",
                context={
                    "operation": "INSERT",
                    "table_name": "properties",
                    "external_id": record.get("external_id")
                },
                original_exception=e
            )
        return values["id"]

    async def insert_batch(self, records: List[Dict[str, Any]]) -> List[Tuple[str, str]]:
        if not records:
            return []

        rows = [self._to_row(record) for record in records]
        try:
            await self.db.execute(insert(Property), rows)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise BatchInsertError(
                f"Batch insert failed: {self._reason(e)}",
                context={"operation": "INSERT", "table_name": "properties", "batch_size": len(rows)},
                original_exception=e
            )

        logger.debug(f"Inserted {len(rows)} properties in one batch")
        return [(row["id"], row["external_id"]) for row in rows]

    async def update_images(
        self,
        property_id: str,
        primary_image_url: Optional[str],
        gallery_image_urls: Optional[List[str]]
    ) -> bool:
        try:
            result = await self.db.execute(
                update(Property)
                .where(Property.id == property_id)
                .values(primary_image_url=primary_image_url, gallery_image_urls=gallery_image_urls)
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise DatabaseError(
                "Failed to update property images",
                context={"operation": "UPDATE", "table_name": "properties", "property_id": property_id},
                original_exception=e
            )
        return result.rowcount > 0

    async def count(self, property_filter: PropertyFilter = PropertyFilter.ALL) -> int:
        stmt = select(func.count()).select_from(Property)

        if property_filter == PropertyFilter.WITH_EXTERNAL_ID:
            stmt = stmt.where(Property.external_id.is_not(None), Property.external_id != "")
        elif property_filter == PropertyFilter.WITH_PRIMARY_IMAGE:
            stmt = stmt.where(Property.primary_image_url.is_not(None))
        elif property_filter == PropertyFilter.WITH_GALLERY:
            stmt = stmt.where(Property.gallery_image_urls.is_not(None))
        elif property_filter == PropertyFilter.PUBLISHED:
            stmt = stmt.where(Property.status == ListingStatus.PUBLISHED)

        try:
            result = await self.db.execute(stmt)
        except SQLAlchemyError as e:
            raise DatabaseError(
                "Failed to count properties",
                context={"operation": "SELECT", "table_name": "properties", "filter": property_filter.value},
                original_exception=e
            )
        return result.scalar_one()

    async def list_missing_primary_image(self, limit: int) -> List[Tuple[str, str]]:
        try:
            result = await self.db.execute(
                select(Property.id, Property.external_id)
                .where(Property.primary_image_url.is_(None))
                .order_by(Property.created_at, Property.id)
                .limit(limit)
            )
        except SQLAlchemyError as e:
            raise DatabaseError(
                "Failed to fetch properties needing images",
                context={"operation": "SELECT", "table_name": "properties"},
                original_exception=e
            )
        return [(row.id, row.external_id) for row in result.all()]

    @staticmethod
    def _to_row(record: Dict[str, Any]) -> Dict[str, Any]:
        row = dict(record)
        row["id"] = row.get("id") or str(uuid.uuid4())
        if row.get("status") is not None:
            row["status"] = ListingStatus(row["status"])
        return row

    @staticmethod
    def _reason(error: SQLAlchemyError) -> str:
        return str(getattr(error, "orig", None) or error)
