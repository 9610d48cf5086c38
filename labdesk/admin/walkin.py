# labdesk/admin/walkin.py
from typing import List
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from labdesk.admin.routes import report_outcome
from labdesk.admin.schemas import WalkinCreate, WalkinOut, WalkinStatusUpdate
from labdesk.auth.routes import get_current_admin
from labdesk.auth.schemas import PatientOut
from labdesk.bookings.crud import tests_for, unknown_test_ids
from labdesk.catalog.schemas import TestOut
from labdesk.db.models import LabTest, Patient, WalkinCollection, WalkinStatus
from labdesk.db.session import get_db
from labdesk.reports import lifecycle
from labdesk.reports.schemas import TestReportEntry

router = APIRouter(
    prefix="/admin/walkin-collections",
    tags=["Walk-in Collections"],
    dependencies=[Depends(get_current_admin)],
)

COMPLETE_WALKIN_STATUSES = (WalkinStatus.report_ready, WalkinStatus.completed)


def _get_collection(db: Session, collection_id: str) -> WalkinCollection:
    collection = db.get(WalkinCollection, collection_id)
    if not collection:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Walk-in collection not found")
    return collection


@router.get("", response_model=List[WalkinOut])
def list_collections(db: Session = Depends(get_db)):
    return db.query(WalkinCollection).order_by(WalkinCollection.created_at.desc()).all()


@router.get("/{collection_id}")
def collection_details(collection_id: str, db: Session = Depends(get_db)):
    collection = _get_collection(db, collection_id)
    return {
        "collection": WalkinOut.model_validate(collection),
        "patient": PatientOut.model_validate(collection.patient) if collection.patient else None,
        "tests": [TestOut.model_validate(t) for t in tests_for(db, collection.test_ids)],
    }


@router.post("", response_model=WalkinOut, status_code=status.HTTP_201_CREATED)
def create_collection(body: WalkinCreate, db: Session = Depends(get_db)):
    if not db.get(Patient, body.patient_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Patient not found")
    unknown = unknown_test_ids(db, body.test_ids)
    if unknown:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unknown test ids: {', '.join(unknown)}")
    collection = WalkinCollection(
        patient_id=body.patient_id,
        doctor_name=body.doctor_name or None,
        doctor_clinic=body.doctor_clinic or None,
        test_ids=list(dict.fromkeys(body.test_ids)),
        status=WalkinStatus.pending,
        notes=body.notes or None,
    )
    lifecycle.start_tracking(collection)
    db.add(collection)
    db.commit()
    db.refresh(collection)
    return collection


@router.patch("/{collection_id}/status", response_model=WalkinOut)
def update_collection_status(collection_id: str, body: WalkinStatusUpdate, db: Session = Depends(get_db)):
    collection = _get_collection(db, collection_id)
    if body.status in COMPLETE_WALKIN_STATUSES and not lifecycle.all_finalized(collection):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"All tests must be finalized before the collection is {body.status.value}"
        )
    collection.status = body.status
    db.commit()
    db.refresh(collection)
    return collection


@router.post("/{collection_id}/tests/{test_id}/report")
def save_collection_test_report(collection_id: str, test_id: str, body: TestReportEntry,
                                db: Session = Depends(get_db)):
    collection = _get_collection(db, collection_id)
    if not db.get(LabTest, test_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Test not found")
    outcome = lifecycle.save_test_report(db, collection, test_id, body)
    return {**report_outcome(outcome), "collection": WalkinOut.model_validate(outcome.parent)}


@router.patch("/{collection_id}/tests/{test_id}/finalize")
def finalize_collection_test_report(collection_id: str, test_id: str, db: Session = Depends(get_db)):
    collection = _get_collection(db, collection_id)
    outcome = lifecycle.finalize_test_report(db, collection, test_id)
    return {**report_outcome(outcome), "collection": WalkinOut.model_validate(outcome.parent)}


@router.delete("/{collection_id}")
def delete_collection(collection_id: str, db: Session = Depends(get_db)):
    collection = _get_collection(db, collection_id)
    db.delete(collection)
    db.commit()
    return {"message": "Walk-in collection deleted successfully"}
