# medalarm/routes/api.py

import os
import random
import string
import logging
from datetime import datetime, date

from flask import Blueprint, request, jsonify, send_from_directory, current_app, abort
from werkzeug.utils import secure_filename

from medalarm.extensions import db, socketio
from medalarm.models import User, Medicine, MedicineTime, Notification
from medalarm.engine.errors import ValidationError
from medalarm.engine.medicines import validate_name, validate_times
from medalarm.utils.dose_rollover import roll_over_statuses
from medalarm.utils.alarm_audio import ensure_alarm_clip

logger = logging.getLogger(__name__)

api_bp = Blueprint("api", __name__, url_prefix="/api")

ALLOWED_IMAGE_EXT = {".png", ".jpg", ".jpeg", ".webp"}


def fail(message, status=400):
    return jsonify({"success": False, "error": message}), status


def new_link_code():
    alphabet = string.ascii_uppercase + string.digits
    while True:
        code = "".join(random.choice(alphabet) for _ in range(6))
        if not User.query.filter_by(link_code=code).first():
            return code


def requested_times(payload):
    """`times` list wins over the legacy single `time` field."""
    times = payload.get("times")
    if times is None and payload.get("time") is not None:
        times = [payload.get("time")]
    return validate_times(times or [])


def parse_quantity(raw):
    if raw is None or raw == "":
        return None
    try:
        qty = int(raw)
    except (TypeError, ValueError):
        raise ValidationError("totalQuantity must be a whole number")
    if qty < 0:
        raise ValidationError("totalQuantity cannot be negative")
    return qty


def load_dose(payload):
    """Resolve (medicine, time entry) for mark-taken / mark-missed / snooze."""
    medicine = db.session.get(Medicine, payload.get("medicineId") or "")
    if not medicine:
        return None, None, fail("Medicine not found", 404)

    hm = payload.get("time")
    entry = medicine.find_time(hm) if hm else (medicine.times[0] if medicine.times else None)
    if not entry:
        return medicine, None, fail("Dose time not found", 404)

    return medicine, entry, None


# =============================================================
# USERS
# =============================================================
@api_bp.route("/create-user", methods=["POST"])
def create_user():
    payload = request.get_json(silent=True) or {}
    name = (payload.get("name") or "").strip()
    role = payload.get("role")

    if not name:
        return fail("Please enter a name")
    if role not in ("patient", "caregiver"):
        return fail("role must be patient or caregiver")

    user = User(name=name, role=role, link_code=new_link_code())
    db.session.add(user)
    db.session.commit()

    logger.info("[API] Created %s %s", role, user.id)
    return jsonify({"success": True, "user": user.to_dict()})


@api_bp.route("/link-user", methods=["POST"])
def link_user():
    payload = request.get_json(silent=True) or {}
    code = (payload.get("linkCode") or "").upper()

    target = User.query.filter_by(link_code=code).first()
    if not target:
        return fail("Link code not found", 404)

    requester = db.session.get(User, payload.get("requesterId") or "")
    if not requester:
        return fail("Requester not found", 404)

    if target in requester.linked_users:
        return fail("Users are already linked")

    # Link both ways
    requester.linked_users.append(target)
    target.linked_users.append(requester)
    db.session.commit()

    return jsonify({
        "success": True,
        "message": f"Successfully linked to {target.name}",
        "linkedUser": target.to_dict(with_links=False),
        "requester": requester.to_dict(),
    })


# =============================================================
# MEDICINES
# =============================================================
@api_bp.route("/add-medicine", methods=["POST"])
def add_medicine():
    payload = request.get_json(silent=True) or {}

    try:
        name = validate_name(payload.get("name"))
        times = requested_times(payload)
        qty = parse_quantity(payload.get("totalQuantity"))
    except ValidationError as e:
        return fail(str(e))

    patient = db.session.get(User, payload.get("patientId") or "")
    if not patient:
        return fail("Patient not found", 404)

    med = Medicine(
        name=name,
        patient_id=patient.id,
        created_by=payload.get("createdBy") or patient.id,
        total_quantity=qty,
    )
    for hm in times:
        med.times.append(MedicineTime(scheduled_time=hm, time=hm, status="pending",
                                      status_date=date.today()))

    db.session.add(med)
    db.session.commit()

    logger.info("[API] Added %s for patient %s at %s", name, patient.id, ", ".join(times))
    return jsonify({"success": True, "medicine": med.to_dict()})


@api_bp.route("/medicines", methods=["GET"])
def list_medicines():
    patient_id = request.args.get("patientId")
    if not patient_id:
        return fail("patientId is required")

    meds = Medicine.query.filter_by(patient_id=patient_id).order_by(Medicine.created_at).all()
    roll_over_statuses(meds)

    return jsonify({"success": True, "medicines": [m.to_dict() for m in meds]})


@api_bp.route("/medicines/<medicine_id>", methods=["PUT"])
def update_medicine(medicine_id):
    med = db.session.get(Medicine, medicine_id)
    if not med:
        return fail("Medicine not found", 404)

    payload = request.get_json(silent=True) or {}

    try:
        if "name" in payload:
            med.name = validate_name(payload.get("name"))
        if "totalQuantity" in payload:
            med.total_quantity = parse_quantity(payload.get("totalQuantity"))
        if "imageUrl" in payload:
            med.image_url = payload.get("imageUrl") or None
        if "times" in payload or "time" in payload:
            times = requested_times(payload)
        else:
            times = None
    except ValidationError as e:
        db.session.rollback()
        return fail(str(e))

    if times is not None:
        # keep today's status for slots that survive the edit
        existing = {t.scheduled_time: t for t in med.times}
        for hm, entry in existing.items():
            if hm not in times:
                med.times.remove(entry)
        for hm in times:
            if hm not in existing:
                med.times.append(MedicineTime(scheduled_time=hm, time=hm, status="pending",
                                              status_date=date.today()))

    db.session.commit()
    return jsonify({"success": True, "medicine": med.to_dict()})


@api_bp.route("/medicines/<medicine_id>", methods=["DELETE"])
def delete_medicine(medicine_id):
    med = db.session.get(Medicine, medicine_id)
    if not med:
        return fail("Medicine not found", 404)

    db.session.delete(med)
    db.session.commit()
    return jsonify({"success": True, "message": "Medicine deleted successfully"})


# =============================================================
# DOSE STATUS
# =============================================================
@api_bp.route("/mark-taken", methods=["POST"])
def mark_taken():
    payload = request.get_json(silent=True) or {}
    med, entry, error = load_dose(payload)
    if error:
        return error

    if entry.status == "taken":
        return jsonify({"success": True, "message": "Medicine already marked as taken"})

    entry.status = "taken"
    entry.taken_at = datetime.utcnow()
    entry.status_date = date.today()

    # One pill per dose
    if med.total_quantity:
        med.total_quantity -= 1

    db.session.commit()
    return jsonify({"success": True, "message": "Medicine marked as taken"})


@api_bp.route("/mark-missed", methods=["POST"])
def mark_missed():
    payload = request.get_json(silent=True) or {}
    med, entry, error = load_dose(payload)
    if error:
        return error

    patient = db.session.get(User, payload.get("patientId") or med.patient_id)
    if not patient:
        return fail("Patient not found", 404)

    if entry.status in ("taken", "missed"):
        return fail(f"Dose already {entry.status}")

    entry.status = "missed"
    entry.missed_at = datetime.utcnow()
    entry.status_date = date.today()

    message = f"{patient.name} missed the {entry.scheduled_time} dose of {med.name}"
    caregivers = patient.caregivers()

    for caregiver in caregivers:
        db.session.add(Notification(
            user_id=caregiver.id,
            patient_id=patient.id,
            medicine_id=med.id,
            message=message,
        ))

    db.session.commit()

    for caregiver in caregivers:
        socketio.emit(
            "missed_dose",
            {"patientId": patient.id, "medicineId": med.id,
             "time": entry.scheduled_time, "message": message},
            to=caregiver.id,
        )

    logger.info("[DOSE CHECK] %s (notified %d caregiver(s))", message, len(caregivers))
    return jsonify({"success": True, "message": "Medicine marked as missed, caregiver notified"})


@api_bp.route("/snooze-dose", methods=["POST"])
def snooze_dose():
    payload = request.get_json(silent=True) or {}
    med, entry, error = load_dose(payload)
    if error:
        return error

    if entry.status in ("taken", "missed"):
        return fail(f"Dose already {entry.status}")

    try:
        snoozed = validate_times([payload.get("snoozedTime")])[0]
    except ValidationError as e:
        return fail(str(e))

    entry.time = snoozed
    entry.status = "snoozed"
    entry.status_date = date.today()
    db.session.commit()

    return jsonify({"success": True, "time": entry.to_dict()})


# =============================================================
# CAREGIVER NOTIFICATIONS
# =============================================================
@api_bp.route("/notifications", methods=["GET"])
def list_notifications():
    user_id = request.args.get("userId")
    if not user_id:
        return fail("userId is required")

    notes = Notification.query.filter_by(user_id=user_id).order_by(
        Notification.created_at.desc(), Notification.id.desc()
    ).all()
    return jsonify({"success": True, "notifications": [n.to_dict() for n in notes]})


# =============================================================
# MEDICINE IMAGES
# =============================================================
@api_bp.route("/upload-medicine-image", methods=["POST"])
def upload_medicine_image():
    med = db.session.get(Medicine, request.form.get("medicineId") or "")
    if not med:
        return fail("Medicine not found", 404)

    image = request.files.get("image")
    if not image or not image.filename:
        return fail("No image uploaded")

    ext = os.path.splitext(image.filename)[1].lower()
    if ext not in ALLOWED_IMAGE_EXT:
        return fail("Unsupported image type")

    upload_dir = current_app.config["UPLOAD_DIR"]
    os.makedirs(upload_dir, exist_ok=True)

    fname = secure_filename(f"{med.id}{ext}")
    image.save(os.path.join(upload_dir, fname))

    med.image_url = f"/api/uploads/{fname}"
    db.session.commit()

    return jsonify({"success": True, "imageUrl": med.image_url})


@api_bp.route("/uploads/<path:filename>", methods=["GET"])
def serve_upload(filename):
    return send_from_directory(current_app.config["UPLOAD_DIR"], filename)


# =============================================================
# PRESCRIPTION SCAN (canned stub)
# =============================================================
SCAN_RESULT = [
    {"name": "Paracetamol 500mg", "times": ["08:00", "20:00"], "totalQuantity": 20},
    {"name": "Vitamin D3", "times": ["09:00"], "totalQuantity": 30},
]


@api_bp.route("/scan-prescription", methods=["POST"])
def scan_prescription():
    # No recognition happens here: every upload yields the same list.
    return jsonify({"success": True, "medicines": SCAN_RESULT})


# =============================================================
# ALARM AUDIO
# =============================================================
@api_bp.route("/alarm-audio/<medicine_id>", methods=["GET"])
def alarm_audio(medicine_id):
    med = db.session.get(Medicine, medicine_id)
    if not med:
        return fail("Medicine not found", 404)

    hm = request.args.get("time") or (med.times[0].scheduled_time if med.times else None)
    if not hm:
        return fail("Medicine has no dose time")

    wav_path = ensure_alarm_clip(
        current_app.config["AUDIO_DIR"], med.id, med.name, hm,
        request.args.get("lang") or current_app.config["ALARM_LANGUAGE"],
    )
    if not os.path.isfile(wav_path):
        abort(404)

    directory, fname = os.path.split(wav_path)
    return send_from_directory(directory, fname, mimetype="audio/wav")
