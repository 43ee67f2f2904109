"""
Derived fields for books and rentals.

Availability is never stored. Every place that serializes a book goes
through book_view(), so ``is_available`` and ``current_rental`` always
come from the same rule: a book is available iff none of its rentals
has ``returned_at`` set to None.

These functions only read attributes; they never touch the session.
"""

from typing import Iterable, List, Optional


BOOK_FIELDS = (
    "id",
    "title",
    "author",
    "isbn",
    "description",
    "cover_image",
    "owner_id",
    "created_at",
)

RENTAL_FIELDS = ("id", "book_id", "user_id", "rented_at", "returned_at", "user")


def active_rental(rentals: Iterable):
    """Return the open rental (returned_at is None) or None."""
    for rental in rentals:
        if rental.returned_at is None:
            return rental
    return None


def is_available(rentals: Iterable) -> bool:
    return active_rental(rentals) is None


def rental_history(rentals: Iterable) -> List:
    """Rentals newest first; rentals with equal timestamps fall back to id."""
    return sorted(rentals, key=lambda r: (r.rented_at, r.id), reverse=True)


def book_view(
    book, rentals: Optional[Iterable] = None, include_history: bool = False
) -> dict:
    """
    Flatten a book into a dict with its derived fields.

    Args:
        book: Book ORM object (or anything with the same attributes)
        rentals: Rentals to derive from; defaults to book.rentals
        include_history: If True, ``rentals`` holds the full history
            newest first. Otherwise it holds only the open rental, if any.

    Returns:
        Dict ready to validate against schemas.BookWithStatus
        or schemas.BookDetail
    """
    rentals = list(book.rentals if rentals is None else rentals)
    current = active_rental(rentals)

    view = {field: getattr(book, field) for field in BOOK_FIELDS}
    view["owner"] = book.owner
    view["is_available"] = current is None
    view["current_rental"] = current
    if include_history:
        view["rentals"] = rental_history(rentals)
    else:
        view["rentals"] = [current] if current is not None else []
    return view


def matches_availability(view: dict, available: Optional[str]) -> bool:
    """
    Apply the ``available`` list filter to a book view.

    "true" keeps available books, "false" keeps rented ones and
    anything else (including None) keeps everything.
    """
    if available == "true":
        return view["is_available"]
    if available == "false":
        return not view["is_available"]
    return True


def collect_user_rentals(views: Iterable[dict], user_id: str) -> List[dict]:
    """
    Gather one user's rentals out of a list of book views.

    A view may carry its full history in ``rentals`` or only its
    ``current_rental``; both are searched. Rentals seen twice are kept
    once, each is tagged with the book it belongs to, and the result is
    sorted newest first.
    """
    found = {}
    for view in views:
        candidates = list(view.get("rentals") or [])
        if view.get("current_rental") is not None:
            candidates.append(view["current_rental"])

        for rental in candidates:
            if rental.user_id != user_id or rental.id in found:
                continue
            entry = {field: getattr(rental, field, None) for field in RENTAL_FIELDS}
            entry["book"] = view
            found[rental.id] = entry

    return sorted(
        found.values(), key=lambda r: (r["rented_at"], r["id"]), reverse=True
    )
