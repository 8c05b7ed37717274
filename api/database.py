"""
Book store layer for the FastAPI application.

Defines the persistence port used by the API and two backends:
MongoDB through motor, and an in-process store for development and tests.
"""

import itertools
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

import structlog
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import ConnectionFailure

from api.models import Book

logger = structlog.get_logger(__name__)


class BookStore(ABC):
    """Persistence operations over Book records keyed by integer id."""

    @abstractmethod
    async def find_all(self) -> List[Book]:
        """Return every book in insertion order."""

    @abstractmethod
    async def find_by_id(self, book_id: int) -> Optional[Book]:
        """Return the book with this id, or None."""

    @abstractmethod
    async def save(self, book: Book) -> Book:
        """Insert a book without an id, or overwrite the record with its id."""

    @abstractmethod
    async def exists_by_id(self, book_id: int) -> bool:
        """Check whether a book with this id is stored."""

    @abstractmethod
    async def delete_by_id(self, book_id: int) -> None:
        """Remove the book with this id."""

    @abstractmethod
    async def delete_all(self) -> None:
        """Remove every book. Ids are not reused afterwards."""

    @abstractmethod
    async def health_check(self) -> Dict:
        """Report store health."""

    async def connect(self) -> None:
        """Open backend resources."""

    async def disconnect(self) -> None:
        """Release backend resources."""


class InMemoryBookStore(BookStore):
    """Dict-backed store. Python dicts keep insertion order."""

    def __init__(self) -> None:
        self._books: Dict[int, Book] = {}
        self._ids = itertools.count(1)

    async def find_all(self) -> List[Book]:
        return [book.model_copy() for book in self._books.values()]

    async def find_by_id(self, book_id: int) -> Optional[Book]:
        book = self._books.get(book_id)
        return book.model_copy() if book else None

    async def save(self, book: Book) -> Book:
        if book.id is None:
            book = book.model_copy(update={"id": next(self._ids)})
        self._books[book.id] = book.model_copy()
        return book

    async def exists_by_id(self, book_id: int) -> bool:
        return book_id in self._books

    async def delete_by_id(self, book_id: int) -> None:
        self._books.pop(book_id, None)

    async def delete_all(self) -> None:
        self._books.clear()

    async def health_check(self) -> Dict:
        return {
            "status": "healthy",
            "backend": "memory",
            "books_count": len(self._books)
        }


class MongoBookStore(BookStore):
    """
    MongoDB-backed store.

    Books are stored with their integer id as ``_id``. Ids come from a
    counters collection incremented atomically, so they increase with
    insertion order.
    """

    COUNTER_NAME = "books"

    def __init__(
        self,
        connection_url: str,
        database_name: str,
        collection_name: str = "books",
        counters_collection_name: str = "counters"
    ):
        """
        Initialize MongoDB book store.

        Args:
            connection_url: MongoDB connection URL
            database_name: Name of the database
            collection_name: Name of the books collection
            counters_collection_name: Name of the id counter collection
        """
        self.connection_url = connection_url
        self.database_name = database_name
        self.collection_name = collection_name
        self.counters_collection_name = counters_collection_name
        self.client: Optional[AsyncIOMotorClient] = None
        self.database: Optional[AsyncIOMotorDatabase] = None
        self.collection: Optional[AsyncIOMotorCollection] = None
        self.counters: Optional[AsyncIOMotorCollection] = None

    async def connect(self) -> None:
        """Establish connection to MongoDB."""
        try:
            self.client = AsyncIOMotorClient(self.connection_url)
            self.database = self.client[self.database_name]
            self.collection = self.database[self.collection_name]
            self.counters = self.database[self.counters_collection_name]

            await self.client.admin.command('ping')
            logger.info("Successfully connected to MongoDB",
                        database=self.database_name,
                        collection=self.collection_name)

        except ConnectionFailure as e:
            logger.error("Failed to connect to MongoDB", error=str(e))
            raise

    async def disconnect(self) -> None:
        """Close MongoDB connection."""
        if self.client:
            self.client.close()
            logger.info("Disconnected from MongoDB")

    @staticmethod
    def _to_document(book: Book) -> Dict:
        return {
            "_id": book.id,
            "title": book.title,
            "author": book.author,
            "publish_year": book.publish_year,
        }

    @staticmethod
    def _from_document(document: Dict) -> Book:
        return Book(
            id=document["_id"],
            title=document["title"],
            author=document["author"],
            publish_year=document.get("publish_year"),
        )

    async def _next_id(self) -> int:
        counter = await self.counters.find_one_and_update(
            {"_id": self.COUNTER_NAME},
            {"$inc": {"seq": 1}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return counter["seq"]

    async def find_all(self) -> List[Book]:
        try:
            cursor = self.collection.find({}).sort("_id", 1)
            documents = await cursor.to_list(length=None)
            return [self._from_document(document) for document in documents]
        except Exception as e:
            logger.error("Failed to list books", error=str(e))
            raise

    async def find_by_id(self, book_id: int) -> Optional[Book]:
        try:
            document = await self.collection.find_one({"_id": book_id})
            return self._from_document(document) if document else None
        except Exception as e:
            logger.error("Failed to get book by ID", book_id=book_id, error=str(e))
            raise

    async def save(self, book: Book) -> Book:
        try:
            if book.id is None:
                book = book.model_copy(update={"id": await self._next_id()})
                await self.collection.insert_one(self._to_document(book))
                logger.debug("Inserted book", book_id=book.id)
            else:
                await self.collection.replace_one(
                    {"_id": book.id}, self._to_document(book), upsert=True
                )
                logger.debug("Replaced book", book_id=book.id)
            return book
        except Exception as e:
            logger.error("Failed to save book", book_id=book.id, error=str(e))
            raise

    async def exists_by_id(self, book_id: int) -> bool:
        count = await self.collection.count_documents({"_id": book_id}, limit=1)
        return count > 0

    async def delete_by_id(self, book_id: int) -> None:
        try:
            await self.collection.delete_one({"_id": book_id})
        except Exception as e:
            logger.error("Failed to delete book", book_id=book_id, error=str(e))
            raise

    async def delete_all(self) -> None:
        result = await self.collection.delete_many({})
        logger.info("Deleted all books", deleted=result.deleted_count)

    async def health_check(self) -> Dict:
        """
        Perform database health check.

        Returns:
            Dictionary with health status
        """
        try:
            await self.database.command("ping")
            books_count = await self.collection.count_documents({})

            return {
                "status": "healthy",
                "backend": "mongodb",
                "books_collection": "accessible",
                "books_count": books_count
            }
        except Exception as e:
            logger.error("Database health check failed", error=str(e))
            return {
                "status": "unhealthy",
                "error": str(e)
            }
