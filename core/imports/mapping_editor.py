import re
from typing import List, Dict, Optional

from core.fields.field_service import FieldService
from core.imports.models import ColumnMapping, CustomFieldConfig
from core.interfaces.repositories import ContactField, FIELD_TYPES
from utils.logger import logger


class MappingEditor:
    """Holds the column mappings while the user reviews them.

    Mappings may be edited any number of times; the last value wins.
    The originally inferred proposals are kept so any mapping can be reset.
    """

    def __init__(self, mappings: List[ColumnMapping]):
        self._original = [mapping.model_copy(deep=True) for mapping in mappings]
        self._mappings = [mapping.model_copy(deep=True) for mapping in mappings]

    @property
    def mappings(self) -> List[ColumnMapping]:
        return list(self._mappings)

    def get_mapping(self, index: int) -> ColumnMapping:
        if index < 0 or index >= len(self._mappings):
            raise IndexError(f"No mapping at position {index}")
        return self._mappings[index]

    def update_mapping(self, index: int, suggested_field: str) -> ColumnMapping:
        """Point a column at another field (empty string unmaps it)"""
        current = self.get_mapping(index)
        self._mappings[index] = current.model_copy(update={"suggested_field": suggested_field.strip()})
        return self._mappings[index]

    def reset_mapping(self, index: int) -> ColumnMapping:
        """Restore the inferred proposal for a column"""
        self.get_mapping(index)
        self._mappings[index] = self._original[index].model_copy(deep=True)
        return self._mappings[index]

    async def create_custom_field(
        self,
        index: int,
        label: str,
        field_service: FieldService,
        field_type: Optional[str] = None
    ) -> ContactField:
        """Persist a new field from a column and map the column onto it.

        If a field with the generated name already exists and is not a
        core field, the column is mapped onto that field instead.
        """
        mapping = self.get_mapping(index)
        label = label.strip()
        if not label:
            raise ValueError("Custom field label is required")

        field_name = re.sub(r"[^a-z0-9]", "_", label.lower())
        field_type = field_type or mapping.data_type
        if field_type not in FIELD_TYPES:
            field_type = "text"

        field = await field_service.get_or_create_custom_field(
            label=label,
            field_name=field_name,
            type=field_type
        )

        self._mappings[index] = mapping.model_copy(update={
            "suggested_field": field.field_name,
            "is_custom_field": True,
            "custom_field_config": CustomFieldConfig(
                label=field.label,
                field_name=field.field_name,
                type=field.type,
                core=False,
                required=field.required
            )
        })
        logger.info(f"Mapped column '{mapping.column_name}' to custom field '{field.field_name}'")
        return field

    def resolved_mappings(self) -> List[ColumnMapping]:
        """Mappings that point at a concrete field"""
        return [mapping for mapping in self._mappings if mapping.is_resolved]

    def can_advance(self) -> bool:
        """At least one column must resolve to a concrete field"""
        return bool(self.resolved_mappings())

    def to_field_map(self) -> Dict[str, str]:
        """Column name -> field name for resolved columns"""
        return {mapping.column_name: mapping.suggested_field for mapping in self.resolved_mappings()}
