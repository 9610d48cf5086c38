# labdesk/admin/catalog.py
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from labdesk.admin.schemas import ReviewApproval
from labdesk.auth.routes import get_current_admin
from labdesk.catalog import geo, schemas
from labdesk.db.models import Advertisement, Booking, HealthPackage, LabSettings, Review
from labdesk.db.session import get_db

router = APIRouter(prefix="/admin", tags=["Admin Catalog"], dependencies=[Depends(get_current_admin)])


def _get_or_404(db: Session, model, item_id: str, label: str):
    item = db.get(model, item_id)
    if not item:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{label} not found")
    return item


def _apply(db: Session, item, updates: dict):
    for field, value in updates.items():
        setattr(item, field, value)
    db.commit()
    db.refresh(item)
    return item


# ---- reviews ----

@router.get("/reviews", response_model=List[schemas.ReviewOut])
def list_reviews(db: Session = Depends(get_db)):
    return db.query(Review).order_by(Review.created_at.desc()).all()


@router.patch("/reviews/{review_id}/approve", response_model=schemas.ReviewOut)
def approve_review(review_id: str, body: ReviewApproval, db: Session = Depends(get_db)):
    review = _get_or_404(db, Review, review_id, "Review")
    return _apply(db, review, {"is_approved": body.is_approved})


@router.delete("/reviews/{review_id}")
def delete_review(review_id: str, db: Session = Depends(get_db)):
    db.delete(_get_or_404(db, Review, review_id, "Review"))
    db.commit()
    return {"message": "Review deleted successfully"}


# ---- advertisements ----

@router.get("/advertisements", response_model=List[schemas.AdvertisementOut])
def list_advertisements(db: Session = Depends(get_db)):
    return db.query(Advertisement).order_by(Advertisement.sort_order, Advertisement.created_at).all()


@router.post("/advertisements", response_model=schemas.AdvertisementOut)
def create_advertisement(body: schemas.AdvertisementCreate, db: Session = Depends(get_db)):
    ad = Advertisement(**body.model_dump())
    db.add(ad)
    db.commit()
    db.refresh(ad)
    return ad


@router.patch("/advertisements/{ad_id}", response_model=schemas.AdvertisementOut)
def update_advertisement(ad_id: str, body: schemas.AdvertisementUpdate, db: Session = Depends(get_db)):
    ad = _get_or_404(db, Advertisement, ad_id, "Advertisement")
    return _apply(db, ad, body.model_dump(exclude_unset=True))


@router.delete("/advertisements/{ad_id}")
def delete_advertisement(ad_id: str, db: Session = Depends(get_db)):
    db.delete(_get_or_404(db, Advertisement, ad_id, "Advertisement"))
    db.commit()
    return {"message": "Advertisement deleted successfully"}


# ---- health packages ----

@router.get("/health-packages", response_model=List[schemas.HealthPackageOut])
def list_health_packages(db: Session = Depends(get_db)):
    return db.query(HealthPackage).order_by(HealthPackage.sort_order, HealthPackage.created_at).all()


@router.post("/health-packages", response_model=schemas.HealthPackageOut)
def create_health_package(body: schemas.HealthPackageCreate, db: Session = Depends(get_db)):
    pkg = HealthPackage(**body.model_dump())
    db.add(pkg)
    db.commit()
    db.refresh(pkg)
    return pkg


@router.patch("/health-packages/{package_id}", response_model=schemas.HealthPackageOut)
def update_health_package(package_id: str, body: schemas.HealthPackageUpdate, db: Session = Depends(get_db)):
    pkg = _get_or_404(db, HealthPackage, package_id, "Health package")
    return _apply(db, pkg, body.model_dump(exclude_unset=True))


@router.delete("/health-packages/{package_id}")
def delete_health_package(package_id: str, db: Session = Depends(get_db)):
    pkg = _get_or_404(db, HealthPackage, package_id, "Health package")
    if db.query(Booking).filter(Booking.health_package_id == package_id).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Health package has bookings; deactivate it instead"
        )
    db.delete(pkg)
    db.commit()
    return {"message": "Health package deleted successfully"}


# ---- lab settings ----

@router.get("/lab-settings", response_model=Optional[schemas.LabSettingsOut])
def get_lab_settings(db: Session = Depends(get_db)):
    return geo.get_lab_settings(db)


@router.post("/lab-settings", response_model=schemas.LabSettingsOut)
def save_lab_settings(body: schemas.LabSettingsUpdate, db: Session = Depends(get_db)):
    """
    Lab settings hold a single row; the first save creates it.
    """
    row = geo.get_lab_settings(db)
    if row is None:
        row = LabSettings(**body.model_dump())
        db.add(row)
        db.commit()
        db.refresh(row)
        return row
    return _apply(db, row, body.model_dump())
