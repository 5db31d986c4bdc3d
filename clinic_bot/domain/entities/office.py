from dataclasses import dataclass


@dataclass(frozen=True)
class OfficeInfo:
    name: str
    address: str
    hours: str
    phone: str
