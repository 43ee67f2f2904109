from lending import models
from lending import schemas
from lending import services
from lending.auth import current_user
from lending.config import configure_logging
from lending.database import engine, get_db
from lending.errors import LendingError

import logging
from typing import List, Optional
from sqlalchemy.orm import Session
from fastapi import FastAPI, Depends, Request, status, Query
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse


configure_logging()
logger = logging.getLogger(__name__)

models.Base.metadata.create_all(bind=engine)

app = FastAPI(
    title="Office Book Lending API",
    description="Share the books you own with colleagues and track who has which one",
    version="1.0.0",
)


@app.exception_handler(LendingError)
async def lending_error_handler(request: Request, exc: LendingError):
    """
    Turn a lending rule violation into its HTTP response.

    Every error answers with a JSON body of the form {"error": message}.
    """
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Report malformed input as 400 naming the first offending field."""
    errors = exc.errors()
    if not errors:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Invalid request"},
        )
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": f"Invalid {location}: {first.get('msg')}"},
    )


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error"},
    )


@app.get("/health")
async def health_check():
    """
    Health check endpoint for monitoring and load balancers.

    Returns:
        Simple status message indicating the service is running
    """
    return {"status": "healthy", "service": "lending-api"}


@app.get("/books", response_model=List[schemas.BookWithStatus])
async def list_books(
    available: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    """
    List all books, newest first, with availability.

    Internal Working:
    1. Loads books with their owner and rentals in a fixed number of queries
    2. projections.book_view() derives isAvailable and currentRental
    3. ?available=true keeps available books, ?available=false rented ones

    Args:
        available: Optional availability filter
        db: Database session (injected)

    Returns:
        List of books with derived availability fields
    """
    return services.list_books(db, available)


@app.post(
    "/books",
    response_model=schemas.Book,
    status_code=status.HTTP_201_CREATED,
)
async def create_book(
    book: schemas.BookCreate,
    user_id: Optional[str] = Depends(current_user),
    db: Session = Depends(get_db),
):
    """
    Add a book owned by the caller (requires sign-in).

    Args:
        book: Title, author, cover image and optional ISBN/description
        user_id: Caller identity (injected)
        db: Database session (injected)

    Returns:
        The created book with its owner

    Raises:
        401 if not signed in, 400 if title, author or cover image is missing
    """
    return services.create_book(db, user_id, **book.model_dump())


@app.get("/books/my", response_model=List[schemas.BookWithStatus])
async def list_my_books(
    user_id: Optional[str] = Depends(current_user),
    db: Session = Depends(get_db),
):
    """List the books the caller owns (requires sign-in)."""
    return services.list_my_books(db, user_id)


@app.get("/books/{book_id}", response_model=schemas.BookWithStatus)
async def get_book(book_id: int, db: Session = Depends(get_db)):
    """
    Get a book by ID with its full rental history.

    Args:
        book_id: The book's database ID
        db: Database session (injected)

    Returns:
        Book with owner, rentals (newest first) and derived availability

    Raises:
        404 if book not found
    """
    return services.get_book(db, book_id)


@app.delete("/books/{book_id}", response_model=schemas.DeleteResult)
async def delete_book(
    book_id: int,
    user_id: Optional[str] = Depends(current_user),
    db: Session = Depends(get_db),
):
    """
    Delete a book and its rental history (owner only).

    Raises:
        401 if not signed in, 404 if book not found, 403 if caller is not the owner
    """
    services.delete_book(db, book_id, user_id)
    return {"success": True}


@app.post(
    "/books/{book_id}/rent",
    response_model=schemas.RentalWithBook,
    status_code=status.HTTP_201_CREATED,
)
async def rent_book(
    book_id: int,
    user_id: Optional[str] = Depends(current_user),
    db: Session = Depends(get_db),
):
    """
    Rent a book (requires sign-in).

    Business Logic:
    1. Verify the book exists
    2. Check the book has no open rental
    3. Create a new rental for the caller

    Raises:
        401 if not signed in, 404 if book not found, 400 if already rented,
        403 if the caller owns the book and owner rental is disabled
    """
    return services.rent_book(db, book_id, user_id)


@app.delete("/books/{book_id}/rent", response_model=schemas.RentalWithBook)
async def return_book(
    book_id: int,
    user_id: Optional[str] = Depends(current_user),
    db: Session = Depends(get_db),
):
    """
    Return a rented book (renter only).

    Sets returnedAt on the book's open rental. The rental row is kept
    as history.

    Raises:
        401 if not signed in, 404 if no open rental,
        403 if the open rental belongs to someone else
    """
    return services.return_book(db, book_id, user_id)


@app.get("/rentals/my", response_model=List[schemas.RentalWithBook])
async def list_my_rentals(
    user_id: Optional[str] = Depends(current_user),
    db: Session = Depends(get_db),
):
    """
    List every rental the caller has held, newest first (requires sign-in).

    Each rental includes the book and its owner.
    """
    return services.list_my_rentals(db, user_id)
