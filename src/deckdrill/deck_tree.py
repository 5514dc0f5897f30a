"""Recursive deck hierarchy: subdecks, transitive questions, safe reparenting."""
import logging
from dataclasses import replace
from typing import Optional

from deckdrill.errors import NotFoundError, PolicyError
from deckdrill.models import Deck, Question, UserContext
from deckdrill.store import DeckStore

logger = logging.getLogger(__name__)


class DeckTree:
    """Read and reshape one user's deck forest through a DeckStore.

    Every walk carries a visited set, so a corrupted parent chain (a cycle or
    a dangling parent id) ends the walk instead of looping.
    """

    def __init__(self, store: DeckStore, user: UserContext):
        self.store = store
        self.user = user

    def get_deck(self, deck_id: str) -> Deck:
        deck = self.store.get_deck(self.user, deck_id)
        if deck is None:
            raise NotFoundError(f"Deck {deck_id} not found")
        return deck

    def find_deck(self, deck_id: str) -> Optional[Deck]:
        return self.store.get_deck(self.user, deck_id)

    def subdecks_of(self, parent_id: Optional[str]) -> list[Deck]:
        return self.store.get_children(self.user, parent_id)

    def root_decks(self) -> list[Deck]:
        return self.subdecks_of(None)

    def questions_of(self, deck_id: str) -> list[Question]:
        return self.store.get_questions(self.user, deck_id)

    def all_questions_of(self, deck_id: str) -> list[Question]:
        """Direct questions first, then each subdeck's questions, depth-first."""
        questions = []
        visited = set()

        def walk(current: str) -> None:
            if current in visited:
                logger.warning("deck %s reached twice while collecting questions", current)
                return
            visited.add(current)
            questions.extend(self.questions_of(current))
            for child in self.subdecks_of(current):
                walk(child.id)

        walk(deck_id)
        return questions

    def total_question_count(self, deck_id: str) -> int:
        return len(self.all_questions_of(deck_id))

    def all_subdecks_of(self, deck_id: str) -> list[Deck]:
        """Every descendant deck, depth-first."""
        found = []
        visited = {deck_id}

        def walk(current: str) -> None:
            for child in self.subdecks_of(current):
                if child.id in visited:
                    continue
                visited.add(child.id)
                found.append(child)
                walk(child.id)

        walk(deck_id)
        return found

    def ancestors_of(self, deck_id: str) -> list[Deck]:
        """Parent chain of a deck, nearest parent first.

        Stops at a root, at a parent id that no longer resolves, or at the
        first repeated id.
        """
        chain = []
        seen = {deck_id}
        deck = self.find_deck(deck_id)
        parent_id = deck.parent_id if deck else None
        while parent_id is not None and parent_id not in seen:
            parent = self.find_deck(parent_id)
            if parent is None:
                break
            seen.add(parent_id)
            chain.append(parent)
            parent_id = parent.parent_id
        return chain

    def breadcrumb(self, deck_id: str) -> list[Deck]:
        """Root-first path ending at the deck itself."""
        deck = self.get_deck(deck_id)
        return list(reversed(self.ancestors_of(deck_id))) + [deck]

    def would_create_cycle(self, child_id: str, parent_id: str) -> bool:
        """True if making `parent_id` the parent of `child_id` closes a loop."""
        if child_id == parent_id:
            return True
        return any(d.id == child_id for d in self.ancestors_of(parent_id))

    def reparent(self, deck_id: str, new_parent_id: Optional[str]) -> Deck:
        """Move a deck under a new parent, or to the root when None."""
        deck = self.get_deck(deck_id)
        if new_parent_id is not None:
            self.get_deck(new_parent_id)
            if self.would_create_cycle(deck_id, new_parent_id):
                logger.warning("rejected moving deck %s under %s: cycle", deck_id, new_parent_id)
                raise PolicyError(
                    f"Cannot move deck '{deck.title}' into one of its own subdecks"
                )
        moved = replace(deck, parent_id=new_parent_id, is_subdeck=new_parent_id is not None)
        self.store.upsert_deck(self.user, moved)
        logger.info("moved deck %s under %s", deck_id, new_parent_id)
        return moved

    def delete_deck(self, deck_id: str) -> None:
        self.get_deck(deck_id)
        self.store.delete_deck(self.user, deck_id)
        logger.info("deleted deck %s and its subdecks", deck_id)
