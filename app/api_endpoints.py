import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional, Type

import uvicorn
from fastapi import APIRouter, FastAPI, Depends, Path, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ValidationError
from sqlalchemy import asc, create_engine, desc, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

import models_sqlalchemy as models
import models_pydantic as schemas
from booking import ensure_available, ensure_valid_range, lock_property
from config import Settings, get_settings
from errors import (
    DuplicateEmail,
    Forbidden,
    InvalidCredentials,
    InvalidReference,
    NotFound,
    StoreFailure,
    ValidationFailed,
    register_exception_handlers,
)
from logging_config import RequestLoggingMiddleware, configure_logging
from security import (
    create_access_token,
    get_current_user_id,
    get_app_settings,
    hash_password,
    verify_password,
)
from validators import (
    MAX_INTEGER,
    PROPERTY_RULES,
    RESERVATION_RULES,
    RESERVATION_UPDATE_RULES,
    SIGNIN_RULES,
    USER_RULES,
    USER_UPDATE_RULES,
    validate_body,
)

logger = logging.getLogger(__name__)

router = APIRouter()

# keeps offset * page_size inside a 64-bit integer
MAX_PAGE = 2**31 - 1

# Dependency to get a DB session
def get_db(request: Request):
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()

# ---------- Utility Functions ----------
def parse_payload(schema: Type[BaseModel], payload: Dict[str, Any]):
    try:
        return schema.model_validate(payload)
    except ValidationError as exc:
        raise ValidationFailed([
            {"field": ".".join(str(part) for part in err["loc"]), "msg": err["msg"]}
            for err in exc.errors()
        ]) from exc

def issue_auth_response(user: models.User, settings: Settings) -> schemas.AuthResponse:
    return schemas.AuthResponse(
        user=schemas.UserSummary(id=user.id, email=user.email),
        token=create_access_token(user.id, settings),
    )

def get_or_404(db: Session, model, entity_id: int, entity: str):
    obj = db.get(model, entity_id)
    if obj is None:
        raise NotFound(entity)
    return obj

def get_owned_reservation(db: Session, reservation_id: int, user_id: int) -> models.Reservation:
    # another user's reservation is reported exactly like a missing one
    r = db.get(models.Reservation, reservation_id)
    if r is None or r.user_id != user_id:
        raise NotFound("Reservation")
    return r

@router.get("/health")
def health():
    return {"status": "ok", "service": "vacation-rentals-api"}

# ---------- Auth Endpoints ----------
@router.post("/signup", response_model=schemas.AuthResponse, status_code=status.HTTP_201_CREATED)
def signup(
    payload: dict = Depends(validate_body(USER_RULES)),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    data = parse_payload(schemas.UserCreate, payload)
    if db.query(models.User).filter(models.User.email == data.email).first():
        raise DuplicateEmail()
    user = models.User(
        email=data.email,
        password=hash_password(data.password),
        first_name=data.first_name,
        last_name=data.last_name,
        phone_number=data.phone_number,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise DuplicateEmail() from exc
    db.refresh(user)
    logger.info("Registered user %s", user.id)
    return issue_auth_response(user, settings)

@router.post("/signin", response_model=schemas.AuthResponse)
def signin(
    payload: dict = Depends(validate_body(SIGNIN_RULES)),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    creds = parse_payload(schemas.Credentials, payload)
    user = db.query(models.User).filter(models.User.email == creds.email).first()
    if not user or not verify_password(creds.password, user.password):
        logger.info("Failed sign-in for %s", creds.email)
        raise InvalidCredentials()
    return issue_auth_response(user, settings)

# ---------- User Endpoints ----------
@router.get("/users/{user_id}", response_model=schemas.UserResponse)
def get_user(user_id: int = Path(..., le=MAX_INTEGER), caller_id: int = Depends(get_current_user_id), db: Session = Depends(get_db)):
    user = get_or_404(db, models.User, user_id, "User")
    return schemas.UserResponse.model_validate(user)

@router.put("/users/{user_id}", response_model=schemas.UserResponse)
def update_user(
    user_id: int = Path(..., le=MAX_INTEGER),
    caller_id: int = Depends(get_current_user_id),
    payload: dict = Depends(validate_body(USER_UPDATE_RULES)),
    db: Session = Depends(get_db),
):
    user = get_or_404(db, models.User, user_id, "User")
    if user.id != caller_id:
        raise Forbidden("You can only modify your own account.")
    data = parse_payload(schemas.UserUpdate, payload)
    if data.password:
        user.password = hash_password(data.password)
    user.first_name = data.first_name
    user.last_name = data.last_name
    user.phone_number = data.phone_number
    db.commit()
    db.refresh(user)
    return schemas.UserResponse.model_validate(user)

@router.delete("/users/{user_id}", response_model=schemas.MessageResponse)
def delete_user(user_id: int = Path(..., le=MAX_INTEGER), caller_id: int = Depends(get_current_user_id), db: Session = Depends(get_db)):
    user = get_or_404(db, models.User, user_id, "User")
    if user.id != caller_id:
        raise Forbidden("You can only delete your own account.")
    db.delete(user)
    db.commit()
    logger.info("Deleted user %s", user_id)
    return schemas.MessageResponse(message="User deleted successfully.")

# ---------- Property Endpoints ----------
@router.post("/properties", response_model=schemas.PropertyResponse, status_code=status.HTTP_201_CREATED)
def create_property(
    caller_id: int = Depends(get_current_user_id),
    payload: dict = Depends(validate_body(PROPERTY_RULES)),
    db: Session = Depends(get_db),
):
    data = parse_payload(schemas.PropertyCreate, payload)
    db_property = models.Property(**data.model_dump())
    db.add(db_property)
    db.commit()
    db.refresh(db_property)
    logger.info("User %s created property %s", caller_id, db_property.id)
    return schemas.PropertyResponse.model_validate(db_property)

@router.get("/properties", response_model=List[schemas.PropertyResponse])
def list_properties(
    capacity: Optional[int] = Query(None, le=MAX_INTEGER, description="Only properties with exactly this capacity"),
    sort: Optional[str] = Query("asc", description="Sort order by price: asc or desc"),
    offset: int = Query(0, ge=0, le=MAX_PAGE, description="Page number"),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    query = select(models.Property)
    if capacity:
        query = query.where(models.Property.capacity == capacity)
    direction = desc if sort == "desc" else asc
    query = (
        query.order_by(direction(models.Property.price), models.Property.id)
        .limit(settings.page_size)
        .offset(offset * settings.page_size)
    )
    try:
        props = db.execute(query).scalars().all()
    except SQLAlchemyError as exc:
        logger.exception("Listing properties failed")
        raise StoreFailure("Failed to retrieve properties.") from exc
    return [schemas.PropertyResponse.model_validate(p) for p in props]

@router.get("/properties/{property_id}", response_model=schemas.PropertyResponse)
def get_property(property_id: int = Path(..., le=MAX_INTEGER), db: Session = Depends(get_db)):
    prop = get_or_404(db, models.Property, property_id, "Property")
    return schemas.PropertyResponse.model_validate(prop)

@router.put("/properties/{property_id}", response_model=schemas.PropertyResponse)
def update_property(
    property_id: int = Path(..., le=MAX_INTEGER),
    caller_id: int = Depends(get_current_user_id),
    payload: dict = Depends(validate_body(PROPERTY_RULES)),
    db: Session = Depends(get_db),
):
    prop = get_or_404(db, models.Property, property_id, "Property")
    data = parse_payload(schemas.PropertyCreate, payload)
    for field, value in data.model_dump().items():
        setattr(prop, field, value)
    db.commit()
    db.refresh(prop)
    return schemas.PropertyResponse.model_validate(prop)

@router.delete("/properties/{property_id}", response_model=schemas.MessageResponse)
def delete_property(property_id: int = Path(..., le=MAX_INTEGER), caller_id: int = Depends(get_current_user_id), db: Session = Depends(get_db)):
    prop = get_or_404(db, models.Property, property_id, "Property")
    db.delete(prop)
    db.commit()
    logger.info("User %s deleted property %s", caller_id, property_id)
    return schemas.MessageResponse(message="Property deleted successfully.")

# ---------- Reservation Endpoints ----------
@router.post("/reservations", response_model=schemas.ReservationResponse, status_code=status.HTTP_201_CREATED)
def create_reservation(
    caller_id: int = Depends(get_current_user_id),
    payload: dict = Depends(validate_body(RESERVATION_RULES)),
    db: Session = Depends(get_db),
):
    data = parse_payload(schemas.ReservationCreate, payload)
    ensure_valid_range(data.arrival_time, data.departure_time)
    if db.get(models.User, caller_id) is None:
        raise InvalidReference("User does not exist.")
    lock_property(db, data.property_id)
    ensure_available(db, data.property_id, data.arrival_time, data.departure_time)
    db_reservation = models.Reservation(
        user_id=caller_id,
        property_id=data.property_id,
        arrival_time=data.arrival_time,
        departure_time=data.departure_time,
    )
    db.add(db_reservation)
    db.commit()
    db.refresh(db_reservation)
    logger.info(
        "User %s booked property %s as reservation %s",
        caller_id, data.property_id, db_reservation.id,
    )
    return schemas.ReservationResponse.model_validate(db_reservation)

@router.get("/reservations", response_model=List[schemas.ReservationResponse])
def list_reservations(caller_id: int = Depends(get_current_user_id), db: Session = Depends(get_db)):
    reservations = db.execute(
        select(models.Reservation)
        .where(models.Reservation.user_id == caller_id)
        .order_by(models.Reservation.arrival_time, models.Reservation.id)
    ).scalars().all()
    return [schemas.ReservationResponse.model_validate(r) for r in reservations]

@router.get("/reservations/{reservation_id}", response_model=schemas.ReservationResponse)
def get_reservation(reservation_id: int = Path(..., le=MAX_INTEGER), caller_id: int = Depends(get_current_user_id), db: Session = Depends(get_db)):
    r = get_owned_reservation(db, reservation_id, caller_id)
    return schemas.ReservationResponse.model_validate(r)

@router.put("/reservations/{reservation_id}", response_model=schemas.ReservationResponse)
def update_reservation(
    reservation_id: int = Path(..., le=MAX_INTEGER),
    caller_id: int = Depends(get_current_user_id),
    payload: dict = Depends(validate_body(RESERVATION_UPDATE_RULES)),
    db: Session = Depends(get_db),
):
    r = get_owned_reservation(db, reservation_id, caller_id)
    data = parse_payload(schemas.ReservationUpdate, payload)
    ensure_valid_range(data.arrival_time, data.departure_time)
    lock_property(db, r.property_id)
    ensure_available(db, r.property_id, data.arrival_time, data.departure_time, exclude_id=r.id)
    r.arrival_time = data.arrival_time
    r.departure_time = data.departure_time
    db.commit()
    db.refresh(r)
    return schemas.ReservationResponse.model_validate(r)

@router.delete("/reservations/{reservation_id}", response_model=schemas.MessageResponse)
def delete_reservation(reservation_id: int = Path(..., le=MAX_INTEGER), caller_id: int = Depends(get_current_user_id), db: Session = Depends(get_db)):
    r = get_owned_reservation(db, reservation_id, caller_id)
    db.delete(r)
    db.commit()
    return schemas.MessageResponse(message="Reservation deleted successfully.")

# ---------- Application ----------
def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    connect_args = {"check_same_thread": False} if settings.database_url.startswith("sqlite") else {}
    engine = create_engine(settings.database_url, connect_args=connect_args)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        models.Base.metadata.create_all(bind=engine)
        logger.info("Database tables ready")
        yield
        engine.dispose()

    app = FastAPI(title="Vacation Rentals API", lifespan=lifespan)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)
    register_exception_handlers(app)
    app.include_router(router)
    return app

app = create_app()

def main():
    settings = app.state.settings
    uvicorn.run(app, host=settings.host, port=settings.port)

if __name__ == "__main__":
    main()
