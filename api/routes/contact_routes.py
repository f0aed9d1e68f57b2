from fastapi import APIRouter, HTTPException, Query
from typing import Optional
from core.contacts.models import (
    BatchCreateRequest,
    BatchCreateResponse,
    ContactItem,
    ContactListResponse,
)
from core.interfaces.repositories import Contact
from db.repository_factory import get_contact_repository
from utils.logger import logger


router = APIRouter(prefix="/contacts")


def _to_item(contact: Contact) -> ContactItem:
    return ContactItem(
        id=contact.id,
        first_name=contact.first_name,
        last_name=contact.last_name,
        phone=contact.phone,
        email=contact.email,
        agent_uid=contact.agent_uid,
        custom_fields=contact.custom_fields,
        source=contact.source,
        created_on=contact.created_on,
        updated_on=contact.updated_on
    )


@router.get("", response_model=ContactListResponse)
async def list_contacts(
    search: Optional[str] = Query(None, description="Match names, email or phone"),
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=100, description="Items per page")
):
    """List contacts with pagination, or search them"""
    try:
        contact_repo = await get_contact_repository()

        if search and search.strip():
            matches = await contact_repo.search_contacts(search)
            skip = (page - 1) * page_size
            return ContactListResponse(
                contacts=[_to_item(contact) for contact in matches[skip:skip + page_size]],
                total=len(matches),
                page=page,
                page_size=page_size
            )

        # Calculate pagination
        skip = (page - 1) * page_size

        contacts = await contact_repo.get_contacts(skip=skip, limit=page_size)
        total = await contact_repo.count_contacts()

        return ContactListResponse(
            contacts=[_to_item(contact) for contact in contacts],
            total=total,
            page=page,
            page_size=page_size
        )

    except Exception as e:
        logger.error(f"Error listing contacts: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/{contact_id}", response_model=ContactItem)
async def get_contact(contact_id: str):
    """Get a contact by ID"""
    try:
        contact_repo = await get_contact_repository()
        contact = await contact_repo.get_by_id(contact_id)
        if contact is None:
            raise HTTPException(status_code=404, detail="Contact not found")
        return _to_item(contact)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error getting contact {contact_id}: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/batch", response_model=BatchCreateResponse)
async def create_contacts_batch(request: BatchCreateRequest):
    """
    Create several contacts in one write

    Records are keyed by field name, for example
    {"firstName": "Jane", "lastName": "Doe", "email": "jane@example.com"}.
    No duplicate check is made.
    """
    try:
        contact_repo = await get_contact_repository()
        ids = await contact_repo.create_contacts_batch(request.records, source=request.source)
        return BatchCreateResponse(success=True, created=len(ids), ids=ids)

    except Exception as e:
        logger.error(f"Error creating contacts in bulk: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))
