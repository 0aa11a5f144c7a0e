"""Product entity."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime

from src.common.exceptions.custom_exceptions import ValidationError
from src.common.utils.date_utils import utc_now

TITLE_MAX_LENGTH = 100


def normalize_title(title: str) -> str:
    """Key used for case-insensitive title uniqueness."""
    return title.strip().lower()


@dataclass
class Product:
    """A catalog entry. Stock is derived from its arrivals and expenses, never stored here."""

    title: str
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    created_at: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        """Trims and validates the title."""
        if not isinstance(self.title, str) or not self.title.strip():
            raise ValidationError("Product title is required", field="title")
        self.title = self.title.strip()
        if len(self.title) > TITLE_MAX_LENGTH:
            raise ValidationError(
                f"Product title cannot be longer than {TITLE_MAX_LENGTH} characters", field="title"
            )

    @property
    def normalized_title(self) -> str:
        return normalize_title(self.title)
