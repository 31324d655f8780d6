import logging
import os
import time
from datetime import datetime
from typing import List
from uuid import uuid4

from fastapi import FastAPI, Depends, HTTPException, Request, UploadFile, File, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from fastapi.staticfiles import StaticFiles
from sqlalchemy import func, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from . import auth, config, database, models, pricing, schemas
from .database import get_db
from .s3_client import ImageStorageError, ImageStorageUnavailable, image_storage
from .seed import qr_code_url, seed_default_data

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Lorry Rental Service",
    description="API for lorry bookings, fleet and agency settings",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json"
)

security = HTTPBearer(auto_error=False)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

PAYMENT_METHODS = ("gpay", "paytm", "phonepe")


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": jsonable_encoder(exc.errors())}
    )


@app.on_event("startup")
async def startup():
    async with database.engine.begin() as conn:
        await conn.run_sync(database.Base.metadata.create_all)

    if config.SEED_DEFAULT_DATA:
        async with database.AsyncSessionLocal() as session:
            await seed_default_data(session)


@app.on_event("shutdown")
async def shutdown():
    await database.engine.dispose()


async def get_current_user(
        credentials: HTTPAuthorizationCredentials = Depends(security),
        db: AsyncSession = Depends(get_db)
):
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Access token required"
        )

    try:
        payload = auth.verify_token(credentials.credentials)
        user_id = payload.get("sub") if payload else None
        if not user_id or not str(user_id).isdigit():
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Invalid or expired token"
            )

        result = await db.execute(
            select(models.User).where(models.User.id == int(user_id))
        )
        user = result.scalar_one_or_none()

        if user is None:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Invalid or expired token"
            )
        return user
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error in get_current_user: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error"
        )


async def require_admin(current_user: models.User = Depends(get_current_user)):
    if current_user.role != "admin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )
    return current_user


def new_booking_id() -> str:
    return f"LR{int(time.time() * 1000)}{uuid4().hex[:4].upper()}"


async def get_vehicle_by_name(db: AsyncSession, name: str):
    result = await db.execute(
        select(models.Vehicle).where(models.Vehicle.name == name)
    )
    return result.scalar_one_or_none()


async def get_agency_settings(db: AsyncSession):
    result = await db.execute(
        select(models.AgencySettings).order_by(models.AgencySettings.id).limit(1)
    )
    return result.scalar_one_or_none()


# Auth

@app.post("/api/login", response_model=schemas.LoginResponse)
async def login(login_data: schemas.LoginRequest, db: AsyncSession = Depends(get_db)):
    try:
        result = await db.execute(
            select(models.User).where(models.User.username == login_data.username)
        )
        user = result.scalar_one_or_none()

        if not user or not auth.verify_password(login_data.password, user.hashed_password):
            logger.warning(f"Failed login for {login_data.username}")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid username or password"
            )

        token = auth.create_user_token(user)
        logger.info(f"User {user.username} logged in")
        return {"message": "Login successful", "token": token, "user": user}

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Login error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error"
        )


# Bookings

@app.get("/api/bookings", response_model=List[schemas.Booking])
async def read_bookings(
        db: AsyncSession = Depends(get_db),
        current_user: models.User = Depends(get_current_user)
):
    try:
        query = select(models.Booking)
        # customers only see their own bookings
        if current_user.role != "admin":
            query = query.where(models.Booking.customer_id == current_user.id)

        result = await db.execute(
            query.order_by(models.Booking.timestamp.desc(), models.Booking.id.desc())
        )
        return result.scalars().all()
    except Exception as e:
        logger.error(f"Get bookings error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch bookings"
        )


@app.post("/api/bookings", response_model=schemas.BookingResult, status_code=status.HTTP_201_CREATED)
async def create_booking(
        booking_data: schemas.BookingCreate,
        db: AsyncSession = Depends(get_db),
        current_user: models.User = Depends(get_current_user)
):
    try:
        vehicle = await get_vehicle_by_name(db, booking_data.vehicle)
        if vehicle is None:
            raise HTTPException(status_code=400, detail="Selected vehicle not found")
        if not vehicle.available:
            raise HTTPException(status_code=400, detail="Selected vehicle is not available")

        settings = await get_agency_settings(db)
        if settings is None:
            logger.error("Booking attempted with no agency settings stored")
            raise HTTPException(status_code=500, detail="Settings not found")

        cost = pricing.calculate_booking_cost(
            vehicle.price_hour,
            vehicle.price_day,
            booking_data.rental_type,
            booking_data.duration,
            pricing.PricingSettings.from_record(settings)
        )

        booking = models.Booking(
            booking_id=new_booking_id(),
            customer_id=current_user.id,
            customer_name=booking_data.customer_name,
            contact=booking_data.contact,
            date=booking_data.date,
            location=booking_data.location,
            vehicle=vehicle.name,
            rental_type=booking_data.rental_type,
            duration=booking_data.duration,
            cost=cost.total,
            payment_method=booking_data.payment_method,
            status=pricing.PENDING,
            timestamp=datetime.utcnow()
        )

        db.add(booking)
        await db.commit()
        await db.refresh(booking)

        logger.info(f"Booking {booking.booking_id} created for {current_user.username}: {vehicle.name}, cost {cost.total:.2f}")
        return {"message": "Booking created successfully", "booking": booking}

    except HTTPException:
        raise
    except pricing.PricingError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        await db.rollback()
        logger.error(f"Create booking error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create booking"
        )


@app.post("/api/bookings/quote", response_model=schemas.Quote)
async def quote_booking(
        quote_data: schemas.QuoteRequest,
        db: AsyncSession = Depends(get_db),
        current_user: models.User = Depends(get_current_user)
):
    """Cost breakdown at current settings, nothing is stored"""
    try:
        vehicle = await get_vehicle_by_name(db, quote_data.vehicle)
        if vehicle is None:
            raise HTTPException(status_code=400, detail="Selected vehicle not found")

        settings = await get_agency_settings(db)
        if settings is None:
            raise HTTPException(status_code=500, detail="Settings not found")

        cost = pricing.calculate_booking_cost(
            vehicle.price_hour,
            vehicle.price_day,
            quote_data.rental_type,
            quote_data.duration,
            pricing.PricingSettings.from_record(settings)
        )

        return {
            "vehicle": vehicle.name,
            "rental_type": quote_data.rental_type,
            "duration": quote_data.duration,
            "base": cost.base,
            "tax": cost.tax,
            "maintenance_fee": cost.maintenance_fee,
            "total": cost.total,
        }

    except HTTPException:
        raise
    except pricing.PricingError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Quote booking error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to calculate booking cost"
        )


@app.put("/api/bookings/{booking_id}/status", response_model=schemas.BookingResult)
async def update_booking_status(
        booking_id: str,
        status_data: schemas.BookingStatusUpdate,
        db: AsyncSession = Depends(get_db),
        admin: models.User = Depends(require_admin)
):
    try:
        if status_data.status not in pricing.BOOKING_STATUSES:
            raise HTTPException(status_code=400, detail="Invalid status")

        result = await db.execute(
            select(models.Booking).where(models.Booking.booking_id == booking_id)
        )
        booking = result.scalar_one_or_none()

        if booking is None:
            raise HTTPException(status_code=404, detail="Booking not found")

        pricing.check_status_transition(
            booking.status,
            status_data.status,
            strict=config.STRICT_STATUS_TRANSITIONS
        )

        previous = booking.status
        booking.status = status_data.status
        await db.commit()
        await db.refresh(booking)

        logger.info(f"Booking {booking_id} status {previous} -> {booking.status} by {admin.username}")
        return {"message": "Booking status updated successfully", "booking": booking}

    except HTTPException:
        raise
    except pricing.StatusTransitionError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        await db.rollback()
        logger.error(f"Update booking status error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update booking status"
        )


# Vehicles

@app.get("/api/vehicles", response_model=List[schemas.Vehicle])
async def read_vehicles(
        available_only: bool = False,
        db: AsyncSession = Depends(get_db)
):
    try:
        query = select(models.Vehicle)

        if available_only:
            query = query.where(models.Vehicle.available == True)

        result = await db.execute(query.order_by(models.Vehicle.id))
        return result.scalars().all()

    except Exception as e:
        logger.error(f"Get vehicles error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch vehicles"
        )


@app.post("/api/vehicles", response_model=schemas.VehicleResult, status_code=status.HTTP_201_CREATED)
async def create_vehicle(
        vehicle_data: schemas.VehicleCreate,
        db: AsyncSession = Depends(get_db),
        admin: models.User = Depends(require_admin)
):
    try:
        if await get_vehicle_by_name(db, vehicle_data.name) is not None:
            raise HTTPException(status_code=400, detail="Vehicle with this name already exists")

        vehicle = models.Vehicle(**vehicle_data.dict())

        db.add(vehicle)
        await db.commit()
        await db.refresh(vehicle)

        logger.info(f"Vehicle {vehicle.name} added by {admin.username}")
        return {"message": "Vehicle added successfully", "vehicle": vehicle}

    except HTTPException:
        raise
    except IntegrityError:
        # lost a race with a concurrent insert of the same name
        await db.rollback()
        raise HTTPException(status_code=400, detail="Vehicle with this name already exists")
    except Exception as e:
        await db.rollback()
        logger.error(f"Add vehicle error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to add vehicle"
        )


@app.put("/api/vehicles/{vehicle_id}", response_model=schemas.VehicleResult)
async def update_vehicle(
        vehicle_id: int,
        vehicle_data: schemas.VehicleUpdate,
        db: AsyncSession = Depends(get_db),
        admin: models.User = Depends(require_admin)
):
    try:
        vehicle = await db.get(models.Vehicle, vehicle_id)

        if vehicle is None:
            raise HTTPException(status_code=404, detail="Vehicle not found")

        update_data = vehicle_data.dict(exclude_unset=True)
        for field, value in update_data.items():
            if value is not None:
                setattr(vehicle, field, value)

        await db.commit()
        await db.refresh(vehicle)

        logger.info(f"Vehicle {vehicle.name} updated by {admin.username}: {sorted(update_data)}")
        return {"message": "Vehicle updated successfully", "vehicle": vehicle}

    except HTTPException:
        raise
    except Exception as e:
        await db.rollback()
        logger.error(f"Update vehicle error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update vehicle"
        )


@app.post("/api/vehicles/{vehicle_id}/image", response_model=schemas.VehicleResult)
async def upload_vehicle_image(
        vehicle_id: int,
        image: UploadFile = File(...),
        db: AsyncSession = Depends(get_db),
        admin: models.User = Depends(require_admin)
):
    uploaded_image = None
    try:
        vehicle = await db.get(models.Vehicle, vehicle_id)

        if vehicle is None:
            raise HTTPException(status_code=404, detail="Vehicle not found")

        if not image.content_type or not image.content_type.startswith('image/'):
            raise HTTPException(status_code=400, detail="File must be an image")

        old_image = vehicle.image
        uploaded_image = await image_storage.upload_file(image.file, image.filename or "upload")
        vehicle.image = uploaded_image

        await db.commit()
        uploaded_image = None
        await db.refresh(vehicle)
        await image_storage.delete_file(old_image)

        logger.info(f"Vehicle {vehicle.name} image replaced by {admin.username}")
        return {"message": "Vehicle image updated successfully", "vehicle": vehicle}

    except HTTPException:
        raise
    except ImageStorageUnavailable:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Image storage unavailable"
        )
    except ImageStorageError:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Image upload failed"
        )
    except Exception as e:
        await db.rollback()
        logger.error(f"Upload vehicle image error: {e}")
        if uploaded_image:
            await image_storage.delete_file(uploaded_image)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update vehicle image"
        )


@app.delete("/api/vehicles/{vehicle_id}")
async def delete_vehicle(
        vehicle_id: int,
        db: AsyncSession = Depends(get_db),
        admin: models.User = Depends(require_admin)
):
    try:
        vehicle = await db.get(models.Vehicle, vehicle_id)

        if vehicle is None:
            raise HTTPException(status_code=404, detail="Vehicle not found")

        # bookings reference vehicles by name
        result = await db.execute(
            select(models.Booking.id).where(models.Booking.vehicle == vehicle.name).limit(1)
        )
        if result.first() is not None:
            raise HTTPException(
                status_code=400,
                detail="Cannot delete vehicle with existing bookings. Consider marking it as unavailable instead."
            )

        image_url = vehicle.image
        await db.delete(vehicle)
        await db.commit()
        await image_storage.delete_file(image_url)

        logger.info(f"Vehicle {vehicle.name} deleted by {admin.username}")
        return {"message": "Vehicle deleted successfully", "vehicle_id": vehicle_id}

    except HTTPException:
        raise
    except Exception as e:
        await db.rollback()
        logger.error(f"Delete vehicle error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete vehicle"
        )


# Settings

@app.get("/api/settings", response_model=schemas.AgencySettings)
async def read_settings(
        db: AsyncSession = Depends(get_db),
        current_user: models.User = Depends(get_current_user)
):
    try:
        settings = await get_agency_settings(db)
        if settings is None:
            settings = models.AgencySettings()
            db.add(settings)
            await db.commit()
            await db.refresh(settings)
        return settings

    except Exception as e:
        await db.rollback()
        logger.error(f"Get settings error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch settings"
        )


@app.put("/api/settings", response_model=schemas.SettingsResult)
async def update_settings(
        settings_data: schemas.AgencySettings,
        db: AsyncSession = Depends(get_db),
        admin: models.User = Depends(require_admin)
):
    try:
        settings = await get_agency_settings(db)
        if settings is None:
            settings = models.AgencySettings()
            db.add(settings)

        for field, value in settings_data.dict().items():
            setattr(settings, field, value)

        await db.commit()
        await db.refresh(settings)

        logger.info(
            f"Settings updated by {admin.username}: tax {settings.tax_percentage}%, "
            f"maintenance fee {settings.maintenance_fee}"
        )
        return {"message": "Settings updated successfully", "settings": settings}

    except Exception as e:
        await db.rollback()
        logger.error(f"Update settings error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update settings"
        )


@app.get("/api/payment-settings", response_model=schemas.PaymentSettings)
async def read_payment_settings(
        db: AsyncSession = Depends(get_db),
        current_user: models.User = Depends(get_current_user)
):
    try:
        result = await db.execute(select(models.PaymentSetting))
        # keyed by method for the checkout page
        return {setting.method: setting for setting in result.scalars().all()}

    except Exception as e:
        logger.error(f"Get payment settings error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch payment settings"
        )


@app.put("/api/payment-settings")
async def update_payment_settings(
        payment_data: schemas.PaymentSettingsUpdate,
        db: AsyncSession = Depends(get_db),
        admin: models.User = Depends(require_admin)
):
    try:
        result = await db.execute(select(models.PaymentSetting))
        existing = {setting.method: setting for setting in result.scalars().all()}

        for method in PAYMENT_METHODS:
            method_data = getattr(payment_data, method)
            setting = existing.get(method)
            if setting is None:
                setting = models.PaymentSetting(method=method)
                db.add(setting)

            setting.upi_id = method_data.upi_id
            setting.qr_code = method_data.custom_qr or qr_code_url(method_data.upi_id)
            setting.custom_qr = method_data.custom_qr or None

        await db.commit()

        logger.info(f"Payment settings updated by {admin.username}")
        return {"message": "Payment settings updated successfully"}

    except Exception as e:
        await db.rollback()
        logger.error(f"Update payment settings error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update payment settings"
        )


# Admin

@app.get("/api/admin/stats", response_model=schemas.AdminStats)
async def read_admin_stats(
        db: AsyncSession = Depends(get_db),
        admin: models.User = Depends(require_admin)
):
    try:
        async def count_bookings(booking_status=None):
            query = select(func.count(models.Booking.id))
            if booking_status is not None:
                query = query.where(models.Booking.status == booking_status)
            result = await db.execute(query)
            return result.scalar_one()

        revenue = await db.execute(
            select(func.coalesce(func.sum(models.Booking.cost), 0))
            .where(models.Booking.status == pricing.CONFIRMED)
        )

        return {
            "total_bookings": await count_bookings(),
            "pending_bookings": await count_bookings(pricing.PENDING),
            "confirmed_bookings": await count_bookings(pricing.CONFIRMED),
            "total_revenue": revenue.scalar_one(),
        }

    except Exception as e:
        logger.error(f"Get admin stats error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch admin statistics"
        )


@app.get("/health")
async def health_check(db: AsyncSession = Depends(get_db)):
    health_info = {
        "status": "healthy",
        "service": "lorry-rental",
        "timestamp": datetime.utcnow().isoformat()
    }

    try:
        start_time = datetime.utcnow()
        await db.execute(text("SELECT 1"))
        db_response_time = (datetime.utcnow() - start_time).total_seconds() * 1000
        health_info["database"] = {
            "status": "connected",
            "response_time_ms": round(db_response_time, 2)
        }
    except Exception as e:
        logger.error(f"Health check database error: {e}")
        health_info["database"] = {"status": "error"}
        health_info["status"] = "unhealthy"

    health_info["image_storage"] = {"status": "configured" if image_storage.enabled else "disabled"}
    return health_info


# Front-end bundle, after the API routes so it only catches what they don't
if os.path.isdir(config.STATIC_DIR):
    app.mount("/", StaticFiles(directory=config.STATIC_DIR, html=True), name="static")
