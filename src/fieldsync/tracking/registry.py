"""
Field registry: the fixed catalog of syncable categories and fields.

The table is compiled at import time and cannot be changed at runtime.
Adding a field means editing _CATEGORIES and redeploying.
"""
from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterator, List, Mapping, Tuple

from fieldsync.tracking.errors import InvalidField


@dataclass(frozen=True)
class FieldDescriptor:
    category: str
    field_name: str


@dataclass(frozen=True)
class CategoryInfo:
    name: str
    display_name: str
    description: str
    fields: Tuple[str, ...]


_CATEGORIES: Tuple[CategoryInfo, ...] = (
    CategoryInfo(
        name="business_info",
        display_name="Business Information",
        description="Basic business details like name, phone, website",
        fields=("business_name", "phone_number", "website", "address", "description"),
    ),
    CategoryInfo(
        name="hours",
        display_name="Business Hours",
        description="Operating hours and special hours",
        fields=("regular_hours", "special_hours", "timezone"),
    ),
    CategoryInfo(
        name="status",
        display_name="Location Status",
        description="Open/closed status and reopening information",
        fields=("location_status", "reopening_date"),
    ),
    CategoryInfo(
        name="categories",
        display_name="Business Categories",
        description="Primary and secondary business categories",
        fields=("primary_category", "secondary_categories"),
    ),
    CategoryInfo(
        name="attributes",
        display_name="Business Attributes",
        description="Additional business attributes and features",
        fields=("attributes",),
    ),
    CategoryInfo(
        name="media",
        display_name="Media Assets",
        description="Logo, cover photo, and other images",
        fields=("logo", "cover_photo", "photos"),
    ),
)

SYNC_FIELDS: Mapping[str, Tuple[str, ...]] = MappingProxyType(
    {info.name: info.fields for info in _CATEGORIES}
)


def categories() -> List[CategoryInfo]:
    """Return category metadata in declaration order."""
    return list(_CATEGORIES)


def iter_fields() -> Iterator[FieldDescriptor]:
    """Yield every declared (category, field) in declaration order."""
    for category, fields in SYNC_FIELDS.items():
        for field_name in fields:
            yield FieldDescriptor(category, field_name)


def validate_category(category: str) -> None:
    if category not in SYNC_FIELDS:
        raise InvalidField(category)


def validate(category: str, field_name: str) -> FieldDescriptor:
    """Return the descriptor for (category, field_name) or raise InvalidField."""
    validate_category(category)
    if field_name not in SYNC_FIELDS[category]:
        raise InvalidField(category, field_name)
    return FieldDescriptor(category, field_name)


def field_count() -> int:
    return sum(len(fields) for fields in SYNC_FIELDS.values())
