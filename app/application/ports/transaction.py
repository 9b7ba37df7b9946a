"""Port interface for transaction boundaries."""

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager


class TransactionManager(ABC):
    @abstractmethod
    def savepoint(self) -> AbstractAsyncContextManager[None]:
        """Scope in which writes either all persist or are all rolled back.

        Nested inside the request transaction; an exception raised in the
        block rolls back only the block.
        """
        ...
