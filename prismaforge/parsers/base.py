from abc import ABC, abstractmethod
from prismaforge.models import ParseResult

class BaseParser(ABC):
    def __init__(self, strict: bool = False):
        self.strict = strict

    @abstractmethod
    def parse(self, sql_content: str) -> ParseResult:
        """Parses DDL content and returns a ParseResult."""
        pass
