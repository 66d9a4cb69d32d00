from __future__ import annotations

import uuid
from dataclasses import dataclass, field


@dataclass
class Client:
    business_id: uuid.UUID
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    name: str = ""
    email: str = ""
    phone: str = ""
    portal_enabled: bool = True
