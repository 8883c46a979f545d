"""
Room CRUD routes (admin only).
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from campus_timetable.dependencies import get_current_admin
from campus_timetable.models.database import get_db
from campus_timetable.models.models import ClassEntry, Room
from campus_timetable.schemas.schemas import RoomCreate, RoomResponse, RoomUpdate, api_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/rooms", tags=["rooms"], dependencies=[Depends(get_current_admin)])


def _room_or_404(db: Session, room_id: int) -> Room:
    room = db.query(Room).filter(Room.id == room_id).first()
    if not room:
        raise HTTPException(status_code=404, detail="Room not found")
    return room


def _ensure_number_free(db: Session, room_number: str, exclude_id: int = None):
    query = db.query(Room).filter(Room.room_number == room_number)
    if exclude_id is not None:
        query = query.filter(Room.id != exclude_id)
    if query.first():
        raise HTTPException(status_code=409, detail="Room already exists with this number")


def _availability_json(slots) -> list:
    return [slot.model_dump(mode="json") for slot in slots]


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_room(body: RoomCreate, db: Session = Depends(get_db)):
    _ensure_number_free(db, body.room_number)
    room = Room(**body.model_dump(exclude={"availability"}))
    room.availability = _availability_json(body.availability)
    db.add(room)
    db.commit()
    db.refresh(room)
    return api_response(RoomResponse.model_validate(room), "Room created successfully", 201)


@router.get("")
async def list_rooms(active_only: bool = False, db: Session = Depends(get_db)):
    query = db.query(Room)
    if active_only:
        query = query.filter(Room.is_active == True)
    rooms = query.order_by(Room.id).all()
    return api_response([RoomResponse.model_validate(r) for r in rooms], "Rooms retrieved successfully")


@router.get("/{room_id}")
async def get_room(room_id: int, db: Session = Depends(get_db)):
    room = _room_or_404(db, room_id)
    return api_response(RoomResponse.model_validate(room), "Room retrieved successfully")


@router.patch("/{room_id}")
async def update_room(room_id: int, body: RoomUpdate, db: Session = Depends(get_db)):
    room = _room_or_404(db, room_id)
    data = body.model_dump(exclude_unset=True, exclude_none=True)
    if "room_number" in data:
        _ensure_number_free(db, data["room_number"], exclude_id=room.id)
    if "availability" in data:
        data.pop("availability")
        room.availability = _availability_json(body.availability)
    for key, value in data.items():
        setattr(room, key, value)
    db.commit()
    db.refresh(room)
    return api_response(RoomResponse.model_validate(room), "Room updated successfully")


@router.delete("/{room_id}")
async def delete_room(room_id: int, db: Session = Depends(get_db)):
    room = _room_or_404(db, room_id)
    referenced = db.query(ClassEntry).filter(ClassEntry.room_number == room.room_number).count()
    if referenced:
        logger.warning(f"Deleting room {room.room_number} still listed in {referenced} timetable class(es)")
    deleted = RoomResponse.model_validate(room)
    db.delete(room)
    db.commit()
    return api_response(deleted, "Room deleted successfully")
