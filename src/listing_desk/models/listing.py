"""
Listing Data Models

Listings are flat rows (column name -> value). The set of columns the
dashboard edits is an ordered list of field descriptors supplied by
configuration; records are checked against that list before they are sent
to the store.
"""
import json
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import List, Optional, Dict, Any, Iterable
from enum import Enum


PROPERTY_ID = 'Property ID'


class ListingStatus(Enum):
    """Listing publication status"""
    DRAFT = "Draft"
    ACTIVE = "Active"


class PropertyType(Enum):
    """Property types"""
    RESIDENTIAL = "Residential"
    LOT = "Lot"


class TaxPayer(Enum):
    """Which party pays the capital gains tax / title transfer"""
    SELLER = "Seller"
    BUYER = "Buyer"


class FieldKind(Enum):
    """How a field is stored and which widget edits it"""
    ID = "id"
    TEXT = "text"
    LONG_TEXT = "long_text"
    NUMBER = "number"
    ENUM = "enum"
    URL = "url"


class RecordValidationError(ValueError):
    """Raised when a record does not match the configured fields"""
    def __init__(self, errors: Dict[str, str]):
        self.errors = errors
        self.message = '; '.join(f"{name}: {error}" for name, error in errors.items())
        super().__init__(self.message)


@dataclass
class FieldDescriptor:
    """One editable column of the listings table"""
    name: str
    kind: FieldKind = FieldKind.TEXT
    choices: List[str] = field(default_factory=list)
    required: bool = False
    default: Any = None
    label: Optional[str] = None

    @property
    def display_label(self) -> str:
        return self.label or self.name

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['kind'] = self.kind.value
        data['label'] = self.display_label
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FieldDescriptor':
        return cls(
            name=data['name'],
            kind=FieldKind(data.get('kind', FieldKind.TEXT.value)),
            choices=list(data.get('choices') or []),
            required=bool(data.get('required', False)),
            default=data.get('default'),
            label=data.get('label'),
        )


def _choices(enum_cls) -> List[str]:
    return [member.value for member in enum_cls]


DEFAULT_FIELDS: List[FieldDescriptor] = [
    FieldDescriptor(PROPERTY_ID, FieldKind.ID),
    FieldDescriptor('Status', FieldKind.ENUM, _choices(ListingStatus), default=ListingStatus.DRAFT.value),
    FieldDescriptor('Type', FieldKind.ENUM, _choices(PropertyType), default=PropertyType.RESIDENTIAL.value),
    FieldDescriptor('Village', FieldKind.TEXT, required=True),
    FieldDescriptor('Location', FieldKind.TEXT, required=True),
    FieldDescriptor('Listing Price', FieldKind.TEXT),
    FieldDescriptor('Lot Area', FieldKind.NUMBER),
    FieldDescriptor('Floor Area', FieldKind.NUMBER),
    FieldDescriptor('CGT', FieldKind.ENUM, ['Seller', 'Buyer'], default=TaxPayer.SELLER.value),
    FieldDescriptor('Transfer Title', FieldKind.ENUM, ['Buyer', 'Seller'], default=TaxPayer.BUYER.value),
    FieldDescriptor('Negotiable', FieldKind.ENUM, ['Yes', 'No'], default='Yes'),
    FieldDescriptor('Listing Agent', FieldKind.TEXT),
    FieldDescriptor('Notes', FieldKind.LONG_TEXT),
    FieldDescriptor('Photos', FieldKind.URL),
    FieldDescriptor('Video', FieldKind.URL),
]


def load_field_descriptors(path: Optional[str] = None) -> List[FieldDescriptor]:
    """
    Load the ordered field list

    Args:
        path: JSON file holding a list of descriptor objects; the built-in
              list is used when empty

    Returns:
        List of FieldDescriptor
    """
    if not path:
        return list(DEFAULT_FIELDS)
    data = json.loads(Path(path).read_text(encoding='utf-8'))
    fields = [FieldDescriptor.from_dict(item) for item in data]
    if not any(f.name == PROPERTY_ID for f in fields):
        fields.insert(0, FieldDescriptor(PROPERTY_ID, FieldKind.ID))
    return fields


def as_text(value: Any) -> str:
    """String form of a cell value, as shown in the table and used for search"""
    if value is None:
        return ''
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def numeric_id(value: Any) -> float:
    """Numeric form of a Property ID; anything non-numeric counts as 0"""
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return value
    try:
        return float(str(value).strip())
    except (TypeError, ValueError):
        return 0


def next_property_id(records: Iterable[Dict[str, Any]]) -> int:
    """max(existing ids) + 1, or 1 for an empty table"""
    highest = max((numeric_id(r.get(PROPERTY_ID)) for r in records), default=0)
    return int(max(highest, 0)) + 1


def _coerce_number(value: Any):
    if is_blank(value):
        return None
    if isinstance(value, bool):
        raise ValueError("must be a number")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValueError("must be a number")
    if number < 0:
        raise ValueError("must not be negative")
    return int(number) if number.is_integer() else number


def validate_record(
    record: Dict[str, Any],
    fields: List[FieldDescriptor],
    partial: bool = False
) -> Dict[str, Any]:
    """
    Check a record against the field descriptors and coerce its values

    Args:
        record: Mapping of field name to value
        fields: Configured descriptors
        partial: Patch mode: skip required checks for absent fields and
                 clear blank enums instead of filling their defaults

    Returns:
        A new, coerced record

    Raises:
        RecordValidationError: listing every offending field
    """
    by_name = {f.name: f for f in fields}
    errors: Dict[str, str] = {}
    cleaned: Dict[str, Any] = {}

    for name, value in record.items():
        descriptor = by_name.get(name)
        if descriptor is None:
            errors[name] = "unknown field"
            continue
        if descriptor.kind == FieldKind.ID:
            if is_blank(value):
                cleaned[name] = None
                continue
            number = numeric_id(value)
            cleaned[name] = int(number) if number and float(number).is_integer() else value
        elif descriptor.kind == FieldKind.NUMBER:
            try:
                cleaned[name] = _coerce_number(value)
            except (TypeError, ValueError) as e:
                errors[name] = str(e)
        elif descriptor.kind == FieldKind.ENUM:
            if is_blank(value):
                # Defaults only fill new rows; an edit clears the column instead
                cleaned[name] = None if partial else descriptor.default
            elif str(value) not in descriptor.choices:
                errors[name] = f"must be one of {', '.join(descriptor.choices)}"
            else:
                cleaned[name] = str(value)
        else:
            cleaned[name] = None if value is None else as_text(value)

    for descriptor in fields:
        if not descriptor.required:
            continue
        if partial and descriptor.name not in record:
            continue
        if is_blank(cleaned.get(descriptor.name)) and descriptor.name not in errors:
            errors[descriptor.name] = "is required"

    if errors:
        raise RecordValidationError(errors)
    return cleaned
