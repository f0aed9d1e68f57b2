import re
from fastapi import APIRouter, HTTPException
from core.fields.exceptions import CoreFieldProtectedError, DuplicateFieldNameError
from core.fields.field_service import FieldService
from core.fields.models import (
    CreateFieldRequest,
    DeleteFieldResponse,
    FieldItem,
    FieldListResponse,
    UpdateFieldRequest,
)
from core.interfaces.repositories import ContactField
from db.repository_factory import get_field_repository
from utils.logger import logger


router = APIRouter(prefix="/fields")


def _to_item(field: ContactField) -> FieldItem:
    return FieldItem(
        id=field.id,
        label=field.label,
        field_name=field.field_name,
        type=field.type,
        core=field.core,
        required=field.required,
        options=field.options,
        created_on=field.created_on
    )


@router.get("", response_model=FieldListResponse)
async def list_fields():
    """List core and custom field definitions"""
    try:
        field_service = FieldService(await get_field_repository())
        fields = await field_service.get_fields()
        return FieldListResponse(fields=[_to_item(field) for field in fields], total=len(fields))

    except Exception as e:
        logger.error(f"Error listing fields: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/initialize", response_model=FieldListResponse)
async def initialize_fields():
    """Create any missing core fields"""
    try:
        field_service = FieldService(await get_field_repository())
        created = await field_service.initialize_core_fields()
        return FieldListResponse(fields=[_to_item(field) for field in created], total=len(created))

    except Exception as e:
        logger.error(f"Error initializing core fields: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("", response_model=FieldItem)
async def create_field(request: CreateFieldRequest):
    """Create a custom field"""
    field_name = request.field_name or re.sub(r"[^a-z0-9]", "_", request.label.strip().lower())

    try:
        field_service = FieldService(await get_field_repository())
        field = await field_service.create_field(
            label=request.label,
            field_name=field_name,
            type=request.type,
            required=request.required,
            options=request.options
        )
        return _to_item(field)

    except DuplicateFieldNameError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error creating field: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@router.patch("/{field_id}", response_model=FieldItem)
async def update_field(field_id: str, request: UpdateFieldRequest):
    """Update a custom field; core fields cannot be edited"""
    try:
        field_service = FieldService(await get_field_repository())
        field = await field_service.update_field(field_id, request.model_dump(exclude_none=True))
        if field is None:
            raise HTTPException(status_code=404, detail="Field not found")
        return _to_item(field)

    except HTTPException:
        raise
    except CoreFieldProtectedError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error updating field {field_id}: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@router.delete("/{field_id}", response_model=DeleteFieldResponse)
async def delete_field(field_id: str):
    """Delete a custom field; core fields cannot be deleted"""
    try:
        field_service = FieldService(await get_field_repository())
        success = await field_service.delete_field(field_id)

        if success:
            return DeleteFieldResponse(success=True, message="Field deleted successfully")
        else:
            raise HTTPException(status_code=404, detail="Field not found")

    except HTTPException:
        raise
    except CoreFieldProtectedError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except Exception as e:
        logger.error(f"Error deleting field {field_id}: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))
