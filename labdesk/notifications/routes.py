# labdesk/notifications/routes.py
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from labdesk.auth.routes import get_current_user
from labdesk.db.models import Notification
from labdesk.db.session import get_db
from labdesk.notifications.schemas import NotificationList, NotificationOut
from labdesk.notifications.service import NotificationService, is_visible_to

router = APIRouter(prefix="/notifications", tags=["Notifications"])


def _patient_scope(user: dict):
    # Admins share one inbox; patients only see their own notifications.
    return None if user.get("type") == "admin" else user.get("sub")


@router.get("", response_model=NotificationList)
def list_notifications(user: dict = Depends(get_current_user), db: Session = Depends(get_db)):
    service = NotificationService(db)
    patient_id = _patient_scope(user)
    notifications = service.for_admins() if patient_id is None else service.for_patient(patient_id)
    return {"notifications": notifications, "unread_count": service.unread_count(patient_id)}


@router.get("/unread-count")
def unread_count(user: dict = Depends(get_current_user), db: Session = Depends(get_db)):
    return {"count": NotificationService(db).unread_count(_patient_scope(user))}


@router.patch("/mark-all-read")
def mark_all_read(user: dict = Depends(get_current_user), db: Session = Depends(get_db)):
    updated = NotificationService(db).mark_all_read(_patient_scope(user))
    return {"message": "All notifications marked as read", "updated": updated}


@router.patch("/{notification_id}/read", response_model=NotificationOut)
def mark_read(notification_id: str, user: dict = Depends(get_current_user), db: Session = Depends(get_db)):
    notification = db.get(Notification, notification_id)
    if not notification:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    if not is_visible_to(notification, user):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    return NotificationService(db).mark_read(notification)
