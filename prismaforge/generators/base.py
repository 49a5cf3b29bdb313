from abc import ABC, abstractmethod
from prismaforge.models import ParseResult

class BaseGenerator(ABC):
    @abstractmethod
    def generate(self, parse_result: ParseResult) -> str:
        """Generates schema text from a ParseResult."""
        pass

    def quote_string(self, value: str) -> str:
        """Double-quotes a value, escaping backslashes and embedded quotes."""
        escaped = value.replace('\\', '\\\\').replace('"', '\\"')
        return f'"{escaped}"'
