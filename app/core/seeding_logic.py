from sqlmodel import select
from loguru import logger
from app.models.school import School
from app.models.central_department import CentralDepartment
from app.models.enums import DepartmentType
from app.models.user import User, UserRole
from app.core.database import AsyncSessionLocal
from app.core.config import settings

# ----------------------------------------------------------------
# 1. DEFINE STATIC DATA
# ----------------------------------------------------------------

SCHOOLS_DATA = [
    {"name": "School of Information & Communication Technology", "code": "SOICT"},
    {"name": "School of Engineering", "code": "SOE"},
    {"name": "School of Management", "code": "SOM"},
    {"name": "School of Biotechnology", "code": "SOBT"},
    {"name": "School of Vocational Studies & Applied Sciences", "code": "SOVSAS"},
    {"name": "School of Law, Justice & Governance", "code": "SOLJ"},
    {"name": "School of Humanities & Social Sciences", "code": "SOHSS"},
    {"name": "School of Architecture & Planning", "code": "SOAP"},
]

# One central department per catalog type. The DRD row is what the
# review domains resolve to when no explicit mapping is configured.
CENTRAL_DEPARTMENTS_DATA = [
    {"name": "Human Resources", "code": "HR", "type": DepartmentType.HR},
    {"name": "ERP Cell", "code": "ERP", "type": DepartmentType.ERP},
    {"name": "Directorate of Research & Development", "code": "DRD", "type": DepartmentType.DRD},
    {"name": "Finance & Accounts", "code": "FIN", "type": DepartmentType.Finance},
    {"name": "University Library", "code": "LIB", "type": DepartmentType.Library},
    {"name": "IT Services", "code": "ITS", "type": DepartmentType.IT},
    {"name": "Admissions Office", "code": "ADM", "type": DepartmentType.Admissions},
    {"name": "Office of the Registrar", "code": "REG", "type": DepartmentType.Registrar},
]


# ----------------------------------------------------------------
# 2. SEEDING FUNCTIONS
# ----------------------------------------------------------------

async def seed_all():
    """Master function to run all seeding logic."""
    async with AsyncSessionLocal() as session:
        try:
            await seed_schools(session)
            await seed_central_departments(session)
            await seed_admin_user(session)

            await session.commit()
            logger.success("Reference data seeding complete.")
        except Exception as e:
            logger.error(f"Seeding failed: {e}")
            await session.rollback()


async def seed_schools(session):
    for s in SCHOOLS_DATA:
        stmt = select(School).where(School.code == s["code"])
        result = await session.execute(stmt)
        if not result.scalar_one_or_none():
            logger.info(f"Creating School: {s['name']}")
            session.add(School(name=s["name"], code=s["code"], short_name=s["code"]))
    await session.flush()


async def seed_central_departments(session):
    for d in CENTRAL_DEPARTMENTS_DATA:
        stmt = select(CentralDepartment).where(CentralDepartment.code == d["code"])
        result = await session.execute(stmt)
        dept_obj = result.scalar_one_or_none()

        if not dept_obj:
            logger.info(f"Creating Central Department: {d['name']}")
            session.add(CentralDepartment(
                name=d["name"],
                code=d["code"],
                short_name=d["code"],
                department_type=d["type"].value,
            ))
        elif dept_obj.department_type != d["type"].value:
            logger.warning(f"Fixing department type for {d['code']}")
            dept_obj.department_type = d["type"].value
            session.add(dept_obj)
    await session.flush()


async def seed_admin_user(session):
    if not settings.SUPER_ADMIN_EMAIL:
        logger.warning("SUPER_ADMIN_EMAIL not set; skipping admin seeding.")
        return

    result = await session.execute(select(User).where(User.email == settings.SUPER_ADMIN_EMAIL))
    if not result.scalar_one_or_none():
        session.add(User(
            name=settings.SUPER_ADMIN_NAME or "Super Admin",
            email=settings.SUPER_ADMIN_EMAIL,
            role=UserRole.Admin,
        ))
        logger.success(f"Super Admin created: {settings.SUPER_ADMIN_EMAIL}")
    else:
        logger.info("Super Admin already exists. Skipping.")
