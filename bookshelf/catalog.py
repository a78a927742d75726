"""
Built-in seed catalog.

The seed is fixed: ids are never reused or reassigned, and the shelf
treats this list as the full universe of items.
"""

from .types import Item


SEED_BOOKS: tuple[tuple[int, str], ...] = (
    (1, "The Alchemist: Paulo Coelho"),
    (2, "To Kill a Mockingbird: Harper Lee"),
    (3, "1984: George Orwell"),
    (4, "Pride and Prejudice: Jane Austen"),
    (5, "The Great Gatsby: F. Scott Fitzgerald"),
    (6, "Moby Dick: Herman Melville"),
    (7, "War and Peace: Leo Tolstoy"),
    (8, "One Hundred Years of Solitude: Gabriel García Márquez"),
    (9, "The Catcher in the Rye: J.D. Salinger"),
    (10, "The Lord of the Rings: J.R.R. Tolkien"),
    (11, "The Hobbit: J.R.R. Tolkien"),
    (12, "Brave New World: Aldous Huxley"),
    (13, "Les Misérables: Victor Hugo"),
    (14, "Don Quixote: Miguel de Cervantes"),
    (15, "The Divine Comedy: Dante Alighieri"),
    (16, "Frankenstein: Mary Shelley"),
    (17, "The Picture of Dorian Gray: Oscar Wilde"),
    (18, "The Odyssey: Homer"),
    (19, "The Catcher in the Rye: J.D. Salinger"),
    (20, "The Secret Garden: Frances Hodgson Burnett"),
)


def seed_items() -> list[Item]:
    """Fresh Item list for the built-in catalog, in seed order."""
    return [Item(id=id, title=title) for id, title in SEED_BOOKS]
