# medalarm/models.py

import uuid
from datetime import datetime, date
from .extensions import db


def _uuid():
    return str(uuid.uuid4())


# ------------------------------------------------------
# PATIENT <-> CAREGIVER LINKS (symmetric)
# ------------------------------------------------------
user_link = db.Table(
    "user_link",
    db.Column("user_id", db.String(36), db.ForeignKey("user.id"), primary_key=True),
    db.Column("linked_id", db.String(36), db.ForeignKey("user.id"), primary_key=True),
)


# ------------------------------------------------------
# USER MODEL
# ------------------------------------------------------
class User(db.Model):
    __tablename__ = "user"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    name = db.Column(db.String(100), nullable=False)
    role = db.Column(db.String(20), nullable=False)  # patient / caregiver
    link_code = db.Column(db.String(6), unique=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    linked_users = db.relationship(
        "User",
        secondary=user_link,
        primaryjoin=id == user_link.c.user_id,
        secondaryjoin=id == user_link.c.linked_id,
        lazy=True,
    )

    medicines = db.relationship(
        "Medicine",
        foreign_keys="Medicine.patient_id",
        backref="patient",
        lazy=True,
        cascade="all, delete-orphan"
    )

    notifications = db.relationship(
        "Notification",
        foreign_keys="Notification.user_id",
        backref="user",
        lazy=True,
        cascade="all, delete"
    )

    def caregivers(self):
        return [u for u in self.linked_users if u.role == "caregiver"]

    def to_dict(self, with_links=True):
        data = {
            "id": self.id,
            "name": self.name,
            "role": self.role,
            "linkCode": self.link_code,
        }
        if with_links:
            data["linkedUsers"] = [
                {"id": u.id, "name": u.name, "role": u.role} for u in self.linked_users
            ]
        return data

    def __repr__(self):
        return f"<User {self.name} ({self.role})>"


# ------------------------------------------------------
# MEDICINE MODEL
# ------------------------------------------------------
class Medicine(db.Model):
    __tablename__ = "medicine"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    patient_id = db.Column(db.String(36), db.ForeignKey("user.id"), nullable=False)
    created_by = db.Column(db.String(36), db.ForeignKey("user.id"), nullable=False)

    name = db.Column(db.String(100), nullable=False)
    total_quantity = db.Column(db.Integer, nullable=True)  # None = not tracked
    image_url = db.Column(db.String(300))

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    last_modified = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow
    )

    times = db.relationship(
        "MedicineTime",
        backref="medicine",
        cascade="all, delete-orphan",
        order_by="MedicineTime.scheduled_time",
        lazy=True
    )

    def find_time(self, hm):
        """Match on the configured time first, then on a snoozed effective time."""
        for t in self.times:
            if t.scheduled_time == hm:
                return t
        for t in self.times:
            if t.time == hm:
                return t
        return None

    def to_dict(self):
        times = [t.to_dict() for t in self.times]
        first = times[0] if times else {"time": None, "status": "pending"}
        return {
            "id": self.id,
            "name": self.name,
            "patientId": self.patient_id,
            "createdBy": self.created_by,
            "totalQuantity": self.total_quantity,
            "imageUrl": self.image_url,
            # legacy single-time mirror for older clients
            "time": first["time"],
            "status": first["status"],
            "times": times,
        }

    def __repr__(self):
        return f"<Medicine {self.name} x{len(self.times)}>"


# ------------------------------------------------------
# MEDICINE TIME (one daily dose slot)
# ------------------------------------------------------
class MedicineTime(db.Model):
    __tablename__ = "medicine_time"

    id = db.Column(db.Integer, primary_key=True)
    medicine_id = db.Column(db.String(36), db.ForeignKey("medicine.id"), nullable=False)

    scheduled_time = db.Column(db.String(5), nullable=False)  # HH:MM as configured
    time = db.Column(db.String(5), nullable=False)            # HH:MM effective (snooze moves it)
    status = db.Column(db.String(20), default="pending")      # pending / taken / missed / snoozed
    status_date = db.Column(db.Date, default=date.today)

    taken_at = db.Column(db.DateTime)
    missed_at = db.Column(db.DateTime)

    __table_args__ = (
        db.UniqueConstraint("medicine_id", "scheduled_time", name="unique_medicine_time"),
    )

    def to_dict(self):
        return {
            "time": self.time,
            "scheduledTime": self.scheduled_time,
            "status": self.status,
        }

    def __repr__(self):
        return f"<MedicineTime {self.scheduled_time}->{self.time} {self.status}>"


# ------------------------------------------------------
# NOTIFICATION MODEL (caregiver inbox)
# ------------------------------------------------------
class Notification(db.Model):
    __tablename__ = "notification"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(36), db.ForeignKey("user.id"), nullable=False)
    patient_id = db.Column(db.String(36))
    medicine_id = db.Column(db.String(36))

    message = db.Column(db.Text)
    read = db.Column(db.Boolean, default=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "patientId": self.patient_id,
            "medicineId": self.medicine_id,
            "message": self.message,
            "read": self.read,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Notification {self.user_id}: {self.message}>"
