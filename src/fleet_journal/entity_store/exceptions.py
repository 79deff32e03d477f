class EntityStoreException(Exception):
    """Base exception class for entity store errors."""

    message = "An error occurred in the entity store."

    def __init__(self, message: str = "An error occurred in the entity store."):
        self.message = message or self.message
        super().__init__(self.message)


class EntityNotFoundException(EntityStoreException):
    """Raised when a record id does not exist in a collection."""

    message = "Record not found."

    def __init__(self, collection: str, entity_id: str):
        self.collection = collection
        self.entity_id = entity_id
        message = f"{self.message} Collection: {collection}, ID: {entity_id}"
        super().__init__(message)


class StoreWriteException(EntityStoreException):
    """Raised when a create or update against the store fails."""

    message = "Failed to write to the entity store."

    def __init__(
        self,
        collection: str,
        details: str = "",
        written_ids: list[str] | None = None,
    ):
        self.collection = collection
        self.details = details
        self.written_ids = written_ids or []
        message = f"{self.message} Collection: {collection}"
        if details != "":
            message += f" Details: {details}"
        super().__init__(message)
