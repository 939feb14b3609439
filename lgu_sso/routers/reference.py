from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from lgu_sso.db import get_db
from lgu_sso.dependencies import require_super_admin
from lgu_sso.models import LocationLevel
from lgu_sso.schemas import DashboardStats, DataResponse, LocationRead, OfficeRead
from lgu_sso.services import reference_data
from lgu_sso.services.stats import dashboard_stats

router = APIRouter(tags=["reference"], dependencies=[Depends(require_super_admin)])


@router.get("/stats/dashboard", response_model=DashboardStats)
def get_dashboard_stats(db: Session = Depends(get_db)) -> DashboardStats:
    return dashboard_stats(db)


@router.get("/offices", response_model=DataResponse[list[OfficeRead]])
def list_offices(db: Session = Depends(get_db)) -> DataResponse[list[OfficeRead]]:
    return DataResponse(data=[OfficeRead.model_validate(item) for item in reference_data.list_offices(db)])


@router.get("/offices/{office_id}", response_model=DataResponse[OfficeRead])
def get_office(office_id: int, db: Session = Depends(get_db)) -> DataResponse[OfficeRead]:
    return DataResponse(data=OfficeRead.model_validate(reference_data.get_office(db, office_id)))


def _locations(items) -> DataResponse[list[LocationRead]]:  # type: ignore[no-untyped-def]
    return DataResponse(data=[LocationRead.model_validate(item) for item in items])


@router.get("/locations/regions", response_model=DataResponse[list[LocationRead]])
def list_regions(db: Session = Depends(get_db)) -> DataResponse[list[LocationRead]]:
    return _locations(reference_data.list_locations(db, level=LocationLevel.REGION))


@router.get("/locations/provinces", response_model=DataResponse[list[LocationRead]])
def list_provinces(db: Session = Depends(get_db)) -> DataResponse[list[LocationRead]]:
    return _locations(reference_data.list_locations(db, level=LocationLevel.PROVINCE))


@router.get("/locations/provinces/{province_code}/cities", response_model=DataResponse[list[LocationRead]])
def list_cities(province_code: str, db: Session = Depends(get_db)) -> DataResponse[list[LocationRead]]:
    return _locations(reference_data.list_locations(db, level=LocationLevel.CITY, parent_code=province_code))


@router.get("/locations/cities/{city_code}/barangays", response_model=DataResponse[list[LocationRead]])
def list_barangays(city_code: str, db: Session = Depends(get_db)) -> DataResponse[list[LocationRead]]:
    return _locations(reference_data.list_locations(db, level=LocationLevel.BARANGAY, parent_code=city_code))
