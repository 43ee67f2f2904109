from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """
    Base for every API schema.

    Internal Working:
    - alias_generator=to_camel: fields are written in camelCase on the wire
      (cover_image -> coverImage) while Python code keeps snake_case
    - populate_by_name=True: request bodies may use either spelling
    - from_attributes=True: schemas can be filled straight from ORM objects
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class UserSummary(CamelModel):
    """Public part of a user profile, embedded as owner or renter."""

    id: str
    name: Optional[str] = None
    image: Optional[str] = None


class BookCreate(CamelModel):
    """
    Schema for creating a book.

    Title, author and cover image are required, but they are checked by
    the lending core rather than here so that a missing field answers
    with the same error whether it is absent, null or blank.
    """

    title: Optional[str] = Field(None, max_length=500)
    author: Optional[str] = Field(None, max_length=200)
    isbn: Optional[str] = Field(None, max_length=20)
    description: Optional[str] = Field(None, max_length=5000)
    cover_image: Optional[str] = Field(None, max_length=2000)


class Book(CamelModel):
    """Schema for book responses, with the owner's summary."""

    id: int
    title: str
    author: str
    isbn: Optional[str] = None
    description: Optional[str] = None
    cover_image: str
    owner_id: str
    created_at: datetime
    owner: UserSummary


class Rental(CamelModel):
    """
    Schema for rental responses.

    returned_at is null while the rental is open.
    """

    id: int
    book_id: int
    user_id: str
    rented_at: datetime
    returned_at: Optional[datetime] = None
    user: UserSummary


class RentalWithBook(Rental):
    """Rental including the rented book and its owner."""

    book: Book


class BookWithStatus(Book):
    """
    Book plus derived availability.

    In list responses ``rentals`` holds only the open rental (if any);
    for a single book it holds the full history, newest first.
    """

    is_available: bool
    current_rental: Optional[Rental] = None
    rentals: List[Rental] = []


class DeleteResult(BaseModel):
    success: bool
