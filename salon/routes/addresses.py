"""
Address API Routes

Saved delivery / home-visit addresses. Each user has at most one default address.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException
from pydantic import ValidationError
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..database import get_db
from ..models import Address, User
from ..schemas import AddressBulkUpdate, AddressCreate, AddressResponse, AddressUpdate, dump
from ..security_utils import sanitize_text
from ..shared.responses import api_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/addresses", tags=["Addresses"])


def _user_addresses(db: Session, user_id: int):
    return db.query(Address).filter(Address.user_id == user_id)


def _get_owned(db: Session, address_id: int, user: User) -> Address:
    address = _user_addresses(db, user.id).filter(Address.id == address_id).first()
    if not address:
        raise HTTPException(status_code=404, detail="Address not found")
    return address


def _clear_default(db: Session, user_id: int, keep_id: Optional[int] = None) -> None:
    query = _user_addresses(db, user_id).filter(Address.is_default.is_(True))
    if keep_id is not None:
        query = query.filter(Address.id != keep_id)
    for address in query.all():
        address.is_default = False


def _apply_updates(db: Session, address: Address, updates: dict, user: User) -> None:
    if updates.get("instructions"):
        updates["instructions"] = sanitize_text(updates["instructions"])

    make_default = updates.pop("is_default", None)
    for field, value in updates.items():
        setattr(address, field, value)

    if make_default:
        _clear_default(db, user.id, keep_id=address.id)
        address.is_default = True
    elif make_default is False and address.is_default:
        # Unsetting the default hands it to the newest other address
        replacement = (
            _user_addresses(db, user.id)
            .filter(Address.id != address.id)
            .order_by(Address.created_at.desc(), Address.id.desc())
            .first()
        )
        if replacement:
            address.is_default = False
            replacement.is_default = True


@router.get("")
async def list_addresses(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    addresses = (
        _user_addresses(db, current_user.id)
        .order_by(Address.is_default.desc(), Address.created_at.desc(), Address.id.desc())
        .all()
    )
    return api_response(
        {"addresses": [dump(AddressResponse, a) for a in addresses], "total": len(addresses)},
        "Addresses retrieved successfully",
    )


@router.post("", status_code=201)
async def create_address(
    data: AddressCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    values = data.model_dump()
    if values.get("instructions"):
        values["instructions"] = sanitize_text(values["instructions"])

    is_first = _user_addresses(db, current_user.id).count() == 0
    if values["is_default"] or is_first:
        _clear_default(db, current_user.id)
        values["is_default"] = True

    address = Address(user_id=current_user.id, **values)
    db.add(address)
    db.commit()
    db.refresh(address)
    logger.info(f"📍 Address {address.id} added for user {current_user.id} (default={address.is_default})")
    return api_response(dump(AddressResponse, address), "Address added successfully")


# ============================================================================
# STATIC ROUTES (declared before /{address_id})
# ============================================================================


@router.get("/default/current")
async def get_default_address(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    address = _user_addresses(db, current_user.id).filter(Address.is_default.is_(True)).first()
    if not address:
        raise HTTPException(status_code=404, detail="No default address found")
    return api_response(dump(AddressResponse, address), "Default address retrieved successfully")


@router.get("/search/location")
async def search_addresses(
    city: Optional[str] = None,
    state: Optional[str] = None,
    pincode: Optional[str] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    query = _user_addresses(db, current_user.id)
    if city:
        query = query.filter(Address.city.ilike(f"%{city}%"))
    if state:
        query = query.filter(Address.state.ilike(f"%{state}%"))
    if pincode:
        query = query.filter(Address.pincode == pincode)

    addresses = query.order_by(Address.created_at.desc()).all()
    return api_response(
        {"addresses": [dump(AddressResponse, a) for a in addresses], "total": len(addresses)},
        "Addresses retrieved successfully",
    )


@router.post("/validate")
async def validate_address(
    payload: dict = Body(...),
    current_user: User = Depends(get_current_user),
):
    """Check an address payload without saving it"""
    try:
        AddressCreate.model_validate(payload)
    except ValidationError as e:
        errors = [
            {
                "field": ".".join(str(part) for part in err["loc"]),
                "message": err["msg"].removeprefix("Value error, "),
            }
            for err in e.errors()
        ]
        return api_response({"valid": False, "errors": errors}, "Address has validation errors")
    return api_response({"valid": True, "errors": []}, "Address is valid")


@router.get("/stats/overview")
async def get_address_stats(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    by_type = dict(
        db.query(Address.address_type, func.count(Address.id))
        .filter(Address.user_id == current_user.id)
        .group_by(Address.address_type)
        .all()
    )
    cities = sorted(
        {
            row.city
            for row in db.query(Address.city).filter(Address.user_id == current_user.id).distinct().all()
        }
    )
    return api_response(
        {
            "total_addresses": sum(by_type.values()),
            "by_type": by_type,
            "cities": cities,
            "has_default": _user_addresses(db, current_user.id).filter(Address.is_default.is_(True)).count() > 0,
        },
        "Address statistics retrieved successfully",
    )


@router.put("/bulk/update")
async def bulk_update_addresses(
    data: AddressBulkUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    updated = []
    for item in data.addresses:
        address = _get_owned(db, item.id, current_user)
        updates = item.model_dump(exclude_unset=True, exclude={"id"})
        _apply_updates(db, address, updates, current_user)
        updated.append(address)

    db.commit()
    for address in updated:
        db.refresh(address)
    logger.info(f"📍 Bulk updated {len(updated)} addresses for user {current_user.id}")
    return api_response(
        {"addresses": [dump(AddressResponse, a) for a in updated], "updated": len(updated)},
        "Addresses updated successfully",
    )


# ============================================================================
# SINGLE ADDRESS
# ============================================================================


@router.get("/{address_id}")
async def get_address(
    address_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return api_response(dump(AddressResponse, _get_owned(db, address_id, current_user)), "Address retrieved successfully")


@router.put("/{address_id}")
async def update_address(
    address_id: int,
    data: AddressUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    address = _get_owned(db, address_id, current_user)
    _apply_updates(db, address, data.model_dump(exclude_unset=True), current_user)
    db.commit()
    db.refresh(address)
    return api_response(dump(AddressResponse, address), "Address updated successfully")


@router.delete("/{address_id}")
async def delete_address(
    address_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    address = _get_owned(db, address_id, current_user)
    was_default = address.is_default
    db.delete(address)
    db.flush()

    if was_default:
        newest = (
            _user_addresses(db, current_user.id).order_by(Address.created_at.desc(), Address.id.desc()).first()
        )
        if newest:
            newest.is_default = True
            logger.info(f"📍 Address {newest.id} promoted to default for user {current_user.id}")

    db.commit()
    return api_response({}, "Address deleted successfully")


@router.patch("/{address_id}/set-default")
async def set_default_address(
    address_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    address = _get_owned(db, address_id, current_user)
    _clear_default(db, current_user.id, keep_id=address.id)
    address.is_default = True
    db.commit()
    db.refresh(address)
    return api_response(dump(AddressResponse, address), "Default address updated successfully")


@router.post("/{address_id}/duplicate", status_code=201)
async def duplicate_address(
    address_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    source = _get_owned(db, address_id, current_user)
    copy = Address(
        user_id=current_user.id,
        label=f"{source.label} (Copy)"[:50],
        street=source.street,
        city=source.city,
        state=source.state,
        pincode=source.pincode,
        country=source.country,
        landmark=source.landmark,
        address_type=source.address_type,
        contact_number=source.contact_number,
        instructions=source.instructions,
        is_default=False,
    )
    db.add(copy)
    db.commit()
    db.refresh(copy)
    return api_response(dump(AddressResponse, copy), "Address duplicated successfully")
