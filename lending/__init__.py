"""Office book-lending service: list the books you own, rent the ones you don't."""
