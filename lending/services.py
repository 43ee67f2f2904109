"""
Lending core: book lifecycle and the rental state machine.

Every operation takes the database session and the caller's user id as
explicit arguments. Operations raise lending.errors exceptions; mapping
them to HTTP responses is the endpoint layer's job.
"""

import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload, selectinload

from lending import config, projections
from lending.errors import BadRequest, Conflict, Forbidden, NotFound, Unauthorized
from lending.models import Book, Rental, utcnow


logger = logging.getLogger(__name__)


def _require_caller(user_id: Optional[str]) -> str:
    if not user_id:
        raise Unauthorized("Unauthorized")
    return user_id


def _books_query(db: Session, history: bool = False):
    """
    Books with owner and renters preloaded, newest first.

    Without history only open rentals are loaded into Book.rentals, which
    is all the list shape needs.
    """
    rentals = Book.rentals
    if not history:
        rentals = Book.rentals.and_(Rental.returned_at.is_(None))
    return (
        db.query(Book)
        .options(
            joinedload(Book.owner),
            selectinload(rentals).joinedload(Rental.user),
        )
        .order_by(Book.created_at.desc(), Book.id.desc())
    )


def _get_book(db: Session, book_id: int) -> Book:
    book = db.query(Book).filter(Book.id == book_id).first()
    if book is None:
        raise NotFound("Book not found")
    return book


def _open_rental(db: Session, book_id: int) -> Optional[Rental]:
    return (
        db.query(Rental)
        .filter(Rental.book_id == book_id, Rental.returned_at.is_(None))
        .first()
    )


def list_books(db: Session, available: Optional[str] = None) -> List[dict]:
    """
    List every book with its derived availability.

    Args:
        db: Database session
        available: "true" for available books only, "false" for rented
            books only, anything else for all books

    Returns:
        Book views (see projections.book_view), newest first
    """
    views = [projections.book_view(book) for book in _books_query(db).all()]
    return [v for v in views if projections.matches_availability(v, available)]


def get_book(db: Session, book_id: int) -> dict:
    """
    Get one book with its full rental history, newest rental first.

    Raises:
        NotFound: if the book does not exist
    """
    book = _books_query(db, history=True).filter(Book.id == book_id).first()
    if book is None:
        raise NotFound("Book not found")
    return projections.book_view(book, include_history=True)


def create_book(
    db: Session,
    owner_id: Optional[str],
    title: Optional[str],
    author: Optional[str],
    cover_image: Optional[str],
    isbn: Optional[str] = None,
    description: Optional[str] = None,
) -> Book:
    """
    Add a book owned by the caller.

    Raises:
        Unauthorized: if there is no caller
        BadRequest: if title, author or cover image is missing or blank
    """
    owner_id = _require_caller(owner_id)

    if not all(value and value.strip() for value in (title, author, cover_image)):
        raise BadRequest("Title, author and cover image are required")

    book = Book(
        title=title.strip(),
        author=author.strip(),
        cover_image=cover_image.strip(),
        isbn=isbn or None,
        description=description or None,
        owner_id=owner_id,
        created_at=utcnow(),
    )
    db.add(book)
    db.commit()
    db.refresh(book)
    logger.info("Book %s (%r) added by %s", book.id, book.title, owner_id)
    return book


def delete_book(db: Session, book_id: int, user_id: Optional[str]) -> None:
    """
    Delete a book and its whole rental history.

    Rentals are deleted first, then the book, in a single transaction,
    so no rental survives its book even without ON DELETE CASCADE.

    Raises:
        Unauthorized: if there is no caller
        NotFound: if the book does not exist
        Forbidden: if the caller is not the owner
    """
    user_id = _require_caller(user_id)
    book = _get_book(db, book_id)

    if book.owner_id != user_id:
        logger.warning(
            "User %s tried to delete book %s owned by %s",
            user_id,
            book_id,
            book.owner_id,
        )
        raise Forbidden("Only the owner can delete this book")

    removed = (
        db.query(Rental)
        .filter(Rental.book_id == book_id)
        .delete(synchronize_session=False)
    )
    db.delete(book)
    db.commit()
    logger.info(
        "Book %s deleted by owner %s with %d rental(s)", book_id, user_id, removed
    )


def rent_book(db: Session, book_id: int, user_id: Optional[str]) -> Rental:
    """
    Open a rental of a book for the caller.

    Business Logic:
    1. The book must exist
    2. Owners may rent their own books unless ALLOW_OWNER_RENTAL is off
    3. The book must have no open rental
    4. A new rental is inserted with rented_at = now, returned_at = NULL

    Step 3 is checked before the insert for a clear error, and again by
    the unique index on open rentals: if another request opened a rental
    between the check and the insert, the commit fails and the caller
    gets the same Conflict. If the book was deleted in the meantime the
    caller gets NotFound instead.

    Raises:
        Unauthorized: if there is no caller
        NotFound: if the book does not exist
        Forbidden: if the caller owns the book and owner rental is disabled
        Conflict: if the book is already rented
    """
    user_id = _require_caller(user_id)
    book = _get_book(db, book_id)

    if not config.ALLOW_OWNER_RENTAL and book.owner_id == user_id:
        raise Forbidden("You cannot rent your own book")

    if _open_rental(db, book_id) is not None:
        logger.warning(
            "User %s tried to rent book %s which is already rented", user_id, book_id
        )
        raise Conflict("Book is already rented")

    rental = Rental(book_id=book_id, user_id=user_id, rented_at=utcnow())
    db.add(rental)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        if db.query(Book.id).filter(Book.id == book_id).first() is None:
            logger.warning(
                "Book %s was deleted while %s was renting it", book_id, user_id
            )
            raise NotFound("Book not found")
        logger.warning(
            "Concurrent rent of book %s by %s rejected by open-rental index",
            book_id,
            user_id,
        )
        raise Conflict("Book is already rented")

    db.refresh(rental)
    logger.info("Book %s rented by %s (rental %s)", book_id, user_id, rental.id)
    return rental


def return_book(db: Session, book_id: int, user_id: Optional[str]) -> Rental:
    """
    Close the caller's open rental of a book.

    The rental is closed with a conditional UPDATE (only while returned_at
    is still NULL), so a rental is never closed twice.

    Raises:
        Unauthorized: if there is no caller
        NotFound: if the book has no open rental
        Forbidden: if the open rental belongs to someone else
    """
    user_id = _require_caller(user_id)
    rental = _open_rental(db, book_id)

    if rental is None:
        raise NotFound("No active rental found for this book")

    if rental.user_id != user_id:
        logger.warning(
            "User %s tried to return book %s rented by %s",
            user_id,
            book_id,
            rental.user_id,
        )
        raise Forbidden("You can only return books you have rented")

    closed = (
        db.query(Rental)
        .filter(Rental.id == rental.id, Rental.returned_at.is_(None))
        .update({Rental.returned_at: utcnow()}, synchronize_session=False)
    )
    if closed == 0:
        db.rollback()
        raise NotFound("No active rental found for this book")

    db.commit()
    db.refresh(rental)
    logger.info("Book %s returned by %s (rental %s)", book_id, user_id, rental.id)
    return rental


def list_my_books(db: Session, user_id: Optional[str]) -> List[dict]:
    """
    List the books the caller owns, newest first, with derived fields.

    Raises:
        Unauthorized: if there is no caller
    """
    user_id = _require_caller(user_id)
    books = _books_query(db).filter(Book.owner_id == user_id).all()
    return [projections.book_view(book) for book in books]


def list_my_rentals(db: Session, user_id: Optional[str]) -> List[dict]:
    """
    List every rental the caller has held, newest first.

    Loads each book the caller has ever rented with its full history and
    lets projections.collect_user_rentals pick out the caller's rentals.

    Raises:
        Unauthorized: if there is no caller
    """
    user_id = _require_caller(user_id)
    rented_book_ids = select(Rental.book_id).where(Rental.user_id == user_id)
    books = (
        _books_query(db, history=True).filter(Book.id.in_(rented_book_ids)).all()
    )
    views = [projections.book_view(book, include_history=True) for book in books]
    return projections.collect_user_rentals(views, user_id)
