"""
FastAPI main application for the Book API.
"""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import List, Optional

import structlog
from fastapi import Depends, FastAPI, HTTPException, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from api.auth import authorize
from api.config import config
from api.database import BookStore, InMemoryBookStore, MongoBookStore
from api.models import (
    MALFORMED_BODY_MESSAGE,
    Book,
    BookValidationError,
    ErrorResponse,
    HealthResponse,
    Principal,
    join_validation_errors,
    parse_book_payload,
)
from utilities.logger import setup_logging

logger = structlog.get_logger(__name__)

BOOKS_PATH = "/api/books"
BOOK_PATH = "/api/books/{book_id}"

# Messages for path parameters that fail type conversion
PATH_PARAM_MESSAGES = {
    "book_id": "id must be an integer",
}

# Request body schema for the docs; bodies are read after the role check
BOOK_REQUEST_BODY = {
    "requestBody": {
        "required": True,
        "content": {
            "application/json": {
                "schema": {
                    "type": "object",
                    "required": ["title", "author"],
                    "properties": {
                        "title": {"type": "string", "minLength": 1, "maxLength": 255},
                        "author": {"type": "string", "minLength": 1, "maxLength": 255},
                        "publishYear": {"type": "string", "nullable": True},
                    },
                }
            }
        },
    }
}

# Global book store
book_store: Optional[BookStore] = None


def create_book_store() -> BookStore:
    """Build the store selected by configuration."""
    if config.storage_backend == "memory":
        return InMemoryBookStore()
    return MongoBookStore(
        connection_url=config.mongodb_url,
        database_name=config.mongodb_database,
        collection_name=config.mongodb_collection,
        counters_collection_name=config.mongodb_counters_collection
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    setup_logging(
        log_level=config.log_level,
        log_format=config.log_format,
        log_file=config.log_file,
        debug=config.debug
    )
    logger.info("Starting Book API", storage_backend=config.storage_backend)

    global book_store
    store = create_book_store()
    try:
        await store.connect()
    except Exception as e:
        logger.error("Failed to initialize book store", error=str(e))
        raise
    book_store = store

    yield

    logger.info("Shutting down Book API")
    await store.disconnect()
    book_store = None


app = FastAPI(
    title=config.api_title,
    description=config.api_description,
    version=config.api_version,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_origins,
    allow_credentials=config.cors_allow_credentials,
    allow_methods=config.cors_allow_methods,
    allow_headers=config.cors_allow_headers,
)


def get_book_store() -> BookStore:
    """Return the store created at startup."""
    if book_store is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Database service not available"
        )
    return book_store


async def read_json_body(request: Request):
    """Decode the request body, reporting malformed JSON as a validation error."""
    try:
        return await request.json()
    except ValueError:
        raise BookValidationError([MALFORMED_BODY_MESSAGE])


# Exception handlers
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Handle HTTP exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=exc.detail,
            status_code=exc.status_code
        ).model_dump(),
        headers=exc.headers
    )


@app.exception_handler(BookValidationError)
async def book_validation_exception_handler(request: Request, exc: BookValidationError):
    """Report field errors as a plain text 400."""
    message = join_validation_errors(exc.errors)
    logger.info("Request validation failed", path=request.url.path, errors=exc.errors)
    return PlainTextResponse(message, status_code=status.HTTP_400_BAD_REQUEST)


@app.exception_handler(RequestValidationError)
async def request_validation_exception_handler(request: Request, exc: RequestValidationError):
    """Report parameter conversion errors as a plain text 400."""
    messages: List[str] = []
    for error in exc.errors():
        name = error.get("loc", ("",))[-1]
        messages.append(PATH_PARAM_MESSAGES.get(name, error.get("msg", "")))
    messages = [message for message in messages if message]
    logger.info("Request validation failed", path=request.url.path, errors=messages)
    return PlainTextResponse(join_validation_errors(messages), status_code=status.HTTP_400_BAD_REQUEST)


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions."""
    logger.error("Unhandled exception", error=str(exc), path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(
            error="Internal server error",
            detail=str(exc) if config.debug else None,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR
        ).model_dump()
    )


# Health check endpoint (no authentication required)
@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Health check endpoint."""
    db_status = "unavailable"
    if book_store:
        health_info = await book_store.health_check()
        db_status = health_info.get("status", "unknown")

    return HealthResponse(
        status="healthy" if db_status == "healthy" else "degraded",
        timestamp=datetime.utcnow(),
        version=config.api_version,
        database_status=db_status
    )


# Books endpoints
@app.get(BOOKS_PATH, response_model=List[Book], tags=["Books"])
async def list_books(
    principal: Principal = Depends(authorize("list")),
    store: BookStore = Depends(get_book_store)
):
    """List all books in insertion order."""
    books = await store.find_all()
    return JSONResponse(content=[book.to_response() for book in books])


@app.get(BOOK_PATH, response_model=Book, tags=["Books"], responses={404: {"description": "Book not found"}})
async def get_book(
    book_id: int,
    principal: Principal = Depends(authorize("get")),
    store: BookStore = Depends(get_book_store)
):
    """
    Get a single book by ID.

    - **book_id**: Book identifier
    """
    book = await store.find_by_id(book_id)
    if book is None:
        return Response(status_code=status.HTTP_404_NOT_FOUND)
    return JSONResponse(content=book.to_response())


@app.post(
    BOOKS_PATH,
    response_model=Book,
    status_code=status.HTTP_201_CREATED,
    tags=["Books"],
    openapi_extra=BOOK_REQUEST_BODY,
    responses={400: {"description": "Validation error", "content": {"text/plain": {}}}}
)
async def create_book(
    request: Request,
    principal: Principal = Depends(authorize("create")),
    store: BookStore = Depends(get_book_store)
):
    """
    Create a book. The store assigns its id.

    - **title**: 1-255 characters
    - **author**: 1-255 characters
    - **publishYear**: optional
    """
    payload = parse_book_payload(await read_json_body(request))
    saved = await store.save(payload.to_book())

    logger.info("Book created", book_id=saved.id, subject=principal.subject)
    return JSONResponse(status_code=status.HTTP_201_CREATED, content=saved.to_response())


@app.put(
    BOOK_PATH,
    response_model=Book,
    tags=["Books"],
    openapi_extra=BOOK_REQUEST_BODY,
    responses={
        400: {"description": "Validation error", "content": {"text/plain": {}}},
        404: {"description": "Book not found"},
    }
)
async def update_book(
    book_id: int,
    request: Request,
    principal: Principal = Depends(authorize("update")),
    store: BookStore = Depends(get_book_store)
):
    """
    Overwrite title, author and publishYear of an existing book.

    A missing id is reported as 404 before the body is validated.
    """
    existing = await store.find_by_id(book_id)
    if existing is None:
        return Response(status_code=status.HTTP_404_NOT_FOUND)

    payload = parse_book_payload(await read_json_body(request))
    updated = await store.save(payload.to_book(book_id=existing.id))

    logger.info("Book updated", book_id=updated.id, subject=principal.subject)
    return JSONResponse(content=updated.to_response())


@app.delete(
    BOOK_PATH,
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["Books"],
    responses={404: {"description": "Book not found"}}
)
async def delete_book(
    book_id: int,
    principal: Principal = Depends(authorize("delete")),
    store: BookStore = Depends(get_book_store)
):
    """Delete a book by ID."""
    if not await store.exists_by_id(book_id):
        return Response(status_code=status.HTTP_404_NOT_FOUND)

    await store.delete_by_id(book_id)

    logger.info("Book deleted", book_id=book_id, subject=principal.subject)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "api.main:app",
        host=config.host,
        port=config.port,
        reload=config.debug,
        log_level=config.log_level.lower()
    )
