# labdesk/catalog/routes.py
from dataclasses import asdict
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from labdesk.catalog import geo, schemas
from labdesk.db.models import Advertisement, HealthPackage, LabTest, Review
from labdesk.db.session import get_db

router = APIRouter(tags=["Catalog"])


def priced_package(pkg: HealthPackage) -> dict:
    """
    Package fields plus discounted_price and savings, rounded to paise.
    """
    data = schemas.HealthPackageOut.model_validate(pkg).model_dump()
    original = float(pkg.original_price)
    discounted = original * (1 - pkg.discount_percentage / 100)
    data["discounted_price"] = round(discounted, 2)
    data["savings"] = round(original - discounted, 2)
    return data


@router.get("/tests", response_model=List[schemas.TestOut])
def list_tests(db: Session = Depends(get_db)):
    return db.query(LabTest).order_by(LabTest.category, LabTest.name).all()


@router.get("/health-packages", response_model=List[schemas.PricedHealthPackage])
def list_health_packages(category: Optional[str] = None, db: Session = Depends(get_db)):
    query = db.query(HealthPackage).filter(HealthPackage.is_active.is_(True))
    if category:
        query = query.filter(HealthPackage.category == category)
    packages = query.order_by(HealthPackage.sort_order, HealthPackage.created_at).all()
    return [priced_package(pkg) for pkg in packages]


@router.get("/health-packages/{package_id}", response_model=schemas.HealthPackageDetail)
def get_health_package(package_id: str, db: Session = Depends(get_db)):
    pkg = db.get(HealthPackage, package_id)
    if not pkg:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Health package not found")
    data = priced_package(pkg)
    data["tests"] = db.query(LabTest).filter(LabTest.id.in_(pkg.test_ids or [])).all()
    return data


@router.get("/reviews", response_model=List[schemas.ReviewOut])
def list_approved_reviews(db: Session = Depends(get_db)):
    return (
        db.query(Review)
        .filter(Review.is_approved.is_(True))
        .order_by(Review.created_at.desc())
        .all()
    )


@router.post("/reviews")
def submit_review(body: schemas.ReviewCreate, db: Session = Depends(get_db)):
    review = Review(**body.model_dump(), is_approved=False)
    db.add(review)
    db.commit()
    db.refresh(review)
    return {
        "message": "Review submitted successfully. It will appear after approval.",
        "review": schemas.ReviewOut.model_validate(review),
    }


@router.get("/advertisements", response_model=List[schemas.AdvertisementOut])
def list_active_advertisements(db: Session = Depends(get_db)):
    return (
        db.query(Advertisement)
        .filter(Advertisement.is_active.is_(True))
        .order_by(Advertisement.sort_order, Advertisement.created_at)
        .all()
    )


@router.get("/lab-settings", response_model=schemas.PublicLabSettings)
def public_lab_settings(db: Session = Depends(get_db)):
    return asdict(geo.lab_location(db))


@router.post("/calculate-distance", response_model=schemas.DistanceResult)
def calculate_distance(body: schemas.DistanceRequest, db: Session = Depends(get_db)):
    return geo.collection_range(db, body.user_latitude, body.user_longitude)
