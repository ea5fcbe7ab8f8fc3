from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select as sa_select, update as sa_update
from sqlalchemy.ext.asyncio import AsyncSession

from bluecollar.auth.deps import get_client_profile
from bluecollar.db.session import get_session
from bluecollar.models.models import ClientAddress, ClientProfile
from bluecollar.schemas.address import AddressIn, AddressOut, AddressUpdate

router = APIRouter(tags=["addresses"])


async def _clear_default(db: AsyncSession, client_id: int):
    await db.execute(
        sa_update(ClientAddress).where(ClientAddress.client_id == client_id, ClientAddress.is_default.is_(True)).values(is_default=False)
    )


async def _owned(db: AsyncSession, address_id: int, client: ClientProfile) -> ClientAddress:
    addr = (
        await db.execute(sa_select(ClientAddress).where(ClientAddress.id == address_id, ClientAddress.client_id == client.id))
    ).scalars().first()
    if not addr:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Address not found")
    return addr


@router.get("", response_model=List[AddressOut])
async def list_addresses(client: ClientProfile = Depends(get_client_profile), db: AsyncSession = Depends(get_session)):
    stmt = (
        sa_select(ClientAddress)
        .where(ClientAddress.client_id == client.id)
        .order_by(ClientAddress.is_default.desc(), ClientAddress.created_at.desc(), ClientAddress.id.desc())
    )
    return (await db.execute(stmt)).scalars().all()


@router.post("", response_model=AddressOut, status_code=201)
async def create_address(payload: AddressIn, client: ClientProfile = Depends(get_client_profile), db: AsyncSession = Depends(get_session)):
    if payload.is_default:
        await _clear_default(db, client.id)
    addr = ClientAddress(client_id=client.id, **payload.model_dump())
    db.add(addr)
    await db.commit()
    await db.refresh(addr)
    return addr


@router.put("/{address_id}", response_model=AddressOut)
async def update_address(
    address_id: int,
    payload: AddressUpdate,
    client: ClientProfile = Depends(get_client_profile),
    db: AsyncSession = Depends(get_session),
):
    addr = await _owned(db, address_id, client)
    changes = payload.model_dump(exclude_unset=True)
    if changes.get("is_default"):
        await _clear_default(db, client.id)
    for field, value in changes.items():
        setattr(addr, field, value)
    await db.commit()
    await db.refresh(addr)
    return addr


@router.patch("/{address_id}/default", response_model=AddressOut)
async def set_default(address_id: int, client: ClientProfile = Depends(get_client_profile), db: AsyncSession = Depends(get_session)):
    addr = await _owned(db, address_id, client)
    await _clear_default(db, client.id)
    addr.is_default = True
    await db.commit()
    await db.refresh(addr)
    return addr


@router.delete("/{address_id}", status_code=204)
async def delete_address(address_id: int, client: ClientProfile = Depends(get_client_profile), db: AsyncSession = Depends(get_session)):
    addr = await _owned(db, address_id, client)
    await db.delete(addr)
    await db.commit()
    return None
