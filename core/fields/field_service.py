from typing import List, Dict, Any, Optional

from core.fields.exceptions import CoreFieldProtectedError, DuplicateFieldNameError
from core.interfaces.repositories import ContactField, ContactFieldRepository, FIELD_TYPES
from utils.logger import logger


# Core contact fields that cannot be edited or deleted
CORE_FIELDS: List[Dict[str, Any]] = [
    {"label": "First Name", "field_name": "firstName", "type": "text", "required": True},
    {"label": "Last Name", "field_name": "lastName", "type": "text", "required": True},
    {"label": "Phone", "field_name": "phone", "type": "phone", "required": True},
    {"label": "Email", "field_name": "email", "type": "email", "required": True},
    {"label": "Assigned Agent", "field_name": "agentUid", "type": "text", "required": False},
]

CORE_FIELD_NAMES = {field["field_name"] for field in CORE_FIELDS}

_EDITABLE_KEYS = {"label", "type", "required", "options"}


class FieldService:
    """Rules for managing contact field definitions"""

    def __init__(self, field_repo: ContactFieldRepository):
        self.field_repo = field_repo

    async def initialize_core_fields(self) -> List[ContactField]:
        """Seed whichever core fields are missing; safe to call repeatedly"""
        existing = {field.field_name for field in await self.field_repo.get_fields()}

        created = []
        for definition in CORE_FIELDS:
            if definition["field_name"] in existing:
                continue
            created.append(await self.field_repo.create_field(
                label=definition["label"],
                field_name=definition["field_name"],
                type=definition["type"],
                core=True,
                required=definition["required"]
            ))

        if created:
            logger.info(f"Initialized {len(created)} core fields")
        return created

    async def get_fields(self) -> List[ContactField]:
        return await self.field_repo.get_fields()

    async def create_field(
        self,
        label: str,
        field_name: str,
        type: str = "text",
        required: bool = False,
        options: Optional[List[str]] = None
    ) -> ContactField:
        """Create a custom field definition"""
        label = label.strip()
        field_name = field_name.strip()
        if not label or not field_name:
            raise ValueError("Field label and field name are required")
        if type not in FIELD_TYPES:
            raise ValueError(f"Unsupported field type '{type}'. Allowed types: {', '.join(FIELD_TYPES)}")
        if field_name in CORE_FIELD_NAMES or await self.field_repo.get_by_field_name(field_name):
            raise DuplicateFieldNameError(f"Field name '{field_name}' already exists")

        field = await self.field_repo.create_field(
            label=label,
            field_name=field_name,
            type=type,
            core=False,
            required=required,
            options=options
        )
        logger.info(f"Created custom field {field.field_name}")
        return field

    async def get_or_create_custom_field(self, label: str, field_name: str, type: str = "text") -> ContactField:
        """Reuse an existing custom field with this name, else create it"""
        existing = await self.field_repo.get_by_field_name(field_name)
        if existing:
            if existing.core:
                raise DuplicateFieldNameError(f"'{field_name}' is a core field")
            return existing
        return await self.create_field(label=label, field_name=field_name, type=type)

    async def update_field(self, field_id: str, updates: Dict[str, Any]) -> Optional[ContactField]:
        """Update label, type, required flag or options of a custom field"""
        field = await self.field_repo.get_by_id(field_id)
        if field is None:
            return None
        if field.core:
            raise CoreFieldProtectedError("Cannot edit core fields")

        unknown = set(updates) - _EDITABLE_KEYS
        if unknown:
            raise ValueError(f"Cannot update field attributes: {', '.join(sorted(unknown))}")
        if "type" in updates and updates["type"] not in FIELD_TYPES:
            raise ValueError(f"Unsupported field type '{updates['type']}'")

        return await self.field_repo.update_field(field_id, updates)

    async def delete_field(self, field_id: str) -> bool:
        """Delete a custom field; the store refuses core fields"""
        return await self.field_repo.delete_field(field_id)
