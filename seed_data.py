from datetime import datetime, timedelta, date
from medalarm import create_app
from medalarm.extensions import db
from medalarm.models import User, Medicine, MedicineTime
from medalarm.routes.api import new_link_code

app = create_app()

with app.app_context():
    print("🚀 Adding demo data...")

    # ----------------------------------------------------------------
    # 🧑‍⚕️ Patient + caregiver
    # ----------------------------------------------------------------
    patient = User.query.filter_by(name="Anku", role="patient").first()
    if not patient:
        patient = User(name="Anku", role="patient", link_code=new_link_code())
        db.session.add(patient)
        db.session.flush()
        print(f"✅ Patient created, link code {patient.link_code}")

    caregiver = User.query.filter_by(name="Amit", role="caregiver").first()
    if not caregiver:
        caregiver = User(name="Amit", role="caregiver", link_code=new_link_code())
        db.session.add(caregiver)
        db.session.flush()
        print("✅ Caregiver created")

    if caregiver not in patient.linked_users:
        patient.linked_users.append(caregiver)
        caregiver.linked_users.append(patient)
        print("🔗 Linked Amit → Anku")

    # ----------------------------------------------------------------
    # 💊 MEDICINES (first dose a couple of minutes from now)
    # ----------------------------------------------------------------
    soon = (datetime.now() + timedelta(minutes=2)).strftime("%H:%M")

    med_list = [
        ("Paracetamol", [soon, "20:00"], 25),
        ("Vitamin C", ["09:00"], 4),
        ("Amoxicillin", ["08:00", "14:00", "20:00"], 5),
        ("Metformin", ["07:30"], None),
    ]

    for name, times, qty in med_list:
        if Medicine.query.filter_by(patient_id=patient.id, name=name).first():
            print(f"⚠️ {name} already exists, skipping")
            continue

        med = Medicine(name=name, patient_id=patient.id, created_by=caregiver.id,
                       total_quantity=qty)
        for hm in times:
            med.times.append(MedicineTime(scheduled_time=hm, time=hm, status="pending",
                                          status_date=date.today()))
        db.session.add(med)
        print(f"💊 {name} at {', '.join(times)}")

    db.session.commit()
    print(f"🎉 Done. Patient id: {patient.id}")
