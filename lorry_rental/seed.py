import logging
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from . import auth, models

logger = logging.getLogger(__name__)

DEFAULT_USERS = [
    {"username": "nishanth", "password": "nishanth", "role": "customer"},
    {"username": "admin", "password": "admin123", "role": "admin"},
]

DEFAULT_VEHICLES = [
    {
        "name": "TATA LPT",
        "image": "https://truckcdn.cardekho.com/in/tata/1815-lpt/tata-1815-lpt.jpg",
        "price_day": 7000,
        "price_hour": 300,
    },
    {
        "name": "Bharath Benz HDT T",
        "image": "https://5.imimg.com/data5/IOS/Default/2023/6/320806107/EY/LC/ZV/186633041/product-jpeg.png",
        "price_day": 25000,
        "price_hour": 1000,
    },
    {
        "name": "TATA 407",
        "image": "https://truckcdn.cardekho.com/in/tata/407-g-sfc/tata-407-g-sfc.jpg",
        "price_day": 12000,
        "price_hour": 500,
    },
    {
        "name": "Eicher Pro 3019",
        "image": "https://www.cmv360.com/_next/image?url=https%3A%2F%2Fd1odgbsvvxl2qd.cloudfront.net%2Fsmall_Eicher_Pro_2110_CNG_Truck_d4edb70c39.webp&w=3840&q=75.jpg",
        "price_day": 5000,
        "price_hour": 200,
    },
    {
        "name": "TATA Signa 4825",
        "image": "https://5.imimg.com/data5/SELLER/Default/2022/6/DW/CQ/JR/126360925/1597393298-tata-signa-tipper-truck-1-.jpg",
        "price_day": 8000,
        "price_hour": 350,
    },
    {
        "name": "Volvo FM 400 HD",
        "image": "https://img.linemedia.com/img/s/dump-truck-Volvo-FM-400-8x4-Bordmatic---1727369990312147022_big--24092619515981524100.jpg",
        "price_day": 20000,
        "price_hour": 900,
    },
    {
        "name": "Mahindra Tyuxo 31-202 HP",
        "image": "https://svmchaser.wordpress.com/wp-content/uploads/2015/06/442fc-dsc_5767.jpg",
        "price_day": 18000,
        "price_hour": 800,
    },
    {
        "name": "Eicher Pro 6000 Series",
        "image": "https://5.imimg.com/data5/FM/UO/UQ/GLADMIN-33643285/6c36b18a27367c18af97cb978bf58f36-500x500-500x500.jpg",
        "price_day": 25000,
        "price_hour": 1000,
    },
    {
        "name": "Asok Leyland V3718",
        "image": "https://4.imimg.com/data4/AL/XM/IMOB-47670626/img_20180522_115142-jpg.jpg",
        "price_day": 25000,
        "price_hour": 1000,
    },
    {
        "name": "Mahindra Blazo X46",
        "image": "https://truckcdn.cardekho.com/in/mahindra/blazo-x-48-10x2-haulage/mahindra-blazo-x-48-10x2-haulage.jpg",
        "price_day": 15000,
        "price_hour": 600,
    },
    {
        "name": "TATA Signa 4225.TK Tipper",
        "image": "https://5.imimg.com/data5/SELLER/Default/2024/2/390279483/GV/IX/LF/23382559/whatsapp-image-2024-02-19-at-6-53-20-pm-1-500x500.jpeg",
        "price_day": 20000,
        "price_hour": 900,
    },
]

DEFAULT_UPI_IDS = {
    "gpay": "lorryrentalagency@okhdfcbank",
    "paytm": "lorryrentalagency@paytm",
    "phonepe": "lorryrentalagency@ybl",
}


def qr_code_url(upi_id: str) -> str:
    return f"https://api.qrserver.com/v1/create-qr-code/?size=200x200&data=UPIID:{upi_id}"


async def _count(db: AsyncSession, model) -> int:
    result = await db.execute(select(func.count()).select_from(model))
    return result.scalar_one()


async def seed_default_data(db: AsyncSession):
    """Fills empty tables with the agency's starting users, fleet and settings."""
    if await _count(db, models.User) == 0:
        for user in DEFAULT_USERS:
            db.add(models.User(
                username=user["username"],
                hashed_password=auth.get_password_hash(user["password"]),
                role=user["role"]
            ))
        await db.commit()
        logger.info("Default users created")

    if await _count(db, models.Vehicle) == 0:
        for vehicle in DEFAULT_VEHICLES:
            db.add(models.Vehicle(description="A Heavy-Duty Truck", **vehicle))
        await db.commit()
        logger.info("Default vehicles created")

    if await _count(db, models.AgencySettings) == 0:
        db.add(models.AgencySettings())
        await db.commit()
        logger.info("Default settings created")

    if await _count(db, models.PaymentSetting) == 0:
        for method, upi_id in DEFAULT_UPI_IDS.items():
            db.add(models.PaymentSetting(method=method, upi_id=upi_id, qr_code=qr_code_url(upi_id)))
        await db.commit()
        logger.info("Default payment settings created")
