from datetime import datetime, timezone
from lending.database import Base
from sqlalchemy.orm import relationship
from sqlalchemy import Column, Integer, String, Text, ForeignKey, DateTime, Index
from sqlalchemy.types import TypeDecorator


def utcnow():
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """
    DateTime column that always hands back aware UTC datetimes.

    SQLite keeps no offset, so values are normalised to UTC on the way in
    and tagged with timezone.utc on the way out. Naive input is taken as UTC.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None and value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class User(Base):
    """
    User model mirroring a profile from the identity provider.

    Rows are written by the identity adapter (lending.auth), never by the
    lending core. The id is the provider's identifier, so it is a string.

    Relationships:
    - One user owns many books (one-to-many)
    - One user has many rentals as renter (one-to-many)
    """

    __tablename__ = "users"

    id = Column(String, primary_key=True, index=True)
    name = Column(String, nullable=True)
    image = Column(String, nullable=True)

    books = relationship("Book", back_populates="owner")
    rentals = relationship("Rental", back_populates="user")


class Book(Base):
    """
    Book model representing a book someone brought to the office.

    Relationships:
    - Many books belong to one owner (many-to-one)
    - One book has many rentals (one-to-many)

    Availability is not stored: a book is available when none of its
    rentals is open (returned_at is NULL). See lending.projections.

    Rentals are removed explicitly before the book is deleted, so the
    relationship neither cascades nor nulls out rental.book_id.
    """

    __tablename__ = "books"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False, index=True)
    author = Column(String, nullable=False, index=True)
    isbn = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    cover_image = Column(String, nullable=False)
    owner_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)

    owner = relationship("User", back_populates="books")

    rentals = relationship(
        "Rental",
        back_populates="book",
        passive_deletes="all",
    )


class Rental(Base):
    """
    Rental model: one user holding one book for a period.

    Business Logic:
    - rented_at records when the book was taken
    - returned_at is NULL while the rental is open and set once on return
    - a closed rental is never reopened; renting again creates a new row

    The partial unique index allows at most one open rental per book.
    Two concurrent rents of the same book both pass the "no open rental"
    check, but only the first INSERT gets through the index.
    """

    __tablename__ = "rentals"

    id = Column(Integer, primary_key=True, index=True)
    book_id = Column(Integer, ForeignKey("books.id"), nullable=False, index=True)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    rented_at = Column(UTCDateTime, default=utcnow, nullable=False)
    returned_at = Column(UTCDateTime, nullable=True)

    book = relationship("Book", back_populates="rentals")
    user = relationship("User", back_populates="rentals")

    __table_args__ = (
        Index(
            "uq_rentals_open_book",
            "book_id",
            unique=True,
            sqlite_where=returned_at.is_(None),
            postgresql_where=returned_at.is_(None),
        ),
    )
