from dataclasses import dataclass


@dataclass(frozen=True)
class Blob:
    """Бинарное тело ответа вместе с заявленным типом содержимого."""
    content: bytes
    content_type: str = "application/octet-stream"

    @property
    def size(self) -> int:
        return len(self.content)

    def text(self, encoding: str = "utf-8") -> str:
        return self.content.decode(encoding)
