"""Saved characters, scoped to their owner."""
from fluentdrama.core.errors import NotFoundError
from fluentdrama.core.logging import setup_logging
from fluentdrama.models.character import Character, CharacterCreate
from fluentdrama.models.user import utcnow
from fluentdrama.services.storage import Storage

logger = setup_logging("characters")


class CharacterRegistry:
    """Create, list, select and delete a user's characters.

    A character belonging to another user is reported as missing.
    """

    def __init__(self, storage: Storage) -> None:
        self.storage = storage

    def create(self, owner_id: str, data: CharacterCreate) -> Character:
        character = Character(owner_id=owner_id, **data.model_dump())
        self.storage.save_character(character)
        logger.info("Character %s created", character.id, extra={"user_id": owner_id})
        return character

    def list(self, owner_id: str) -> list[Character]:
        return self.storage.list_characters(owner_id)

    def get(self, owner_id: str, character_id: str) -> Character:
        character = self.storage.get_character(character_id, owner_id)
        if character is None:
            raise NotFoundError("Character not found")
        return character

    def select(self, owner_id: str, character_id: str) -> Character:
        """Fetch a character for a scene and count the use."""
        character = self.storage.touch_character(character_id, owner_id, utcnow())
        if character is None:
            raise NotFoundError("Character not found")
        return character

    def delete(self, owner_id: str, character_id: str) -> None:
        if not self.storage.delete_character(character_id, owner_id):
            raise NotFoundError("Character not found")
        logger.info("Character %s deleted", character_id, extra={"user_id": owner_id})
