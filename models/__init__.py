"""Data models for accounts, industries, water-quality samples, alerts and email audit."""
import uuid
from datetime import datetime

from flask_login import UserMixin
from werkzeug.security import check_password_hash, generate_password_hash

from extensions import db


def generate_uuid() -> str:
	return str(uuid.uuid4())


KIT_TYPES: tuple[str, ...] = (
	"incoming",
	"outgoing",
)

READING_FIELDS: tuple[str, ...] = (
	"ph",
	"turbidity",
	"temperature",
	"tds",
	"dissolved_oxygen",
)

EMAIL_DELIVERY_STATUSES: tuple[str, ...] = (
	"SENT",
	"FAILED",
)


class Role(db.Model):
	__tablename__ = "roles"

	id = db.Column(db.Integer, primary_key=True)
	name = db.Column(db.String(50), unique=True, nullable=False, index=True)
	description = db.Column(db.String(255), nullable=True)

	users = db.relationship("User", back_populates="role", lazy="dynamic")

	@staticmethod
	def get_or_create(name: str, description: str = ""):
		role = Role.query.filter_by(name=name).first()
		if role:
			return role
		role = Role(name=name, description=description)
		db.session.add(role)
		db.session.commit()
		return role


class User(UserMixin, db.Model):
	__tablename__ = "users"

	id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
	name = db.Column(db.String(150), nullable=False)
	email = db.Column(db.String(255), unique=True, nullable=False, index=True)
	password_hash = db.Column(db.String(255), nullable=False)
	role_id = db.Column(db.Integer, db.ForeignKey("roles.id"), nullable=False)
	is_verified = db.Column(db.Boolean, default=False, nullable=False)
	industry_id = db.Column(db.Integer, db.ForeignKey("industries.id", use_alter=True, name="fk_users_industry_id"), nullable=True)
	is_active = db.Column(db.Boolean, default=True, nullable=False)
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
	last_login_at = db.Column(db.DateTime, nullable=True)

	role = db.relationship("Role", back_populates="users")
	industry = db.relationship("Industry", foreign_keys=[industry_id])
	owned_industries = db.relationship(
		"Industry", back_populates="owner", foreign_keys="Industry.owner_id", lazy="dynamic"
	)
	audit_logs = db.relationship("AuditLog", back_populates="user", lazy="dynamic")

	def set_password(self, password: str) -> None:
		self.password_hash = generate_password_hash(password, method="pbkdf2:sha256", salt_length=16)

	def check_password(self, password: str) -> bool:
		return check_password_hash(self.password_hash, password)

	@property
	def role_name(self) -> str:
		return (self.role.name if self.role else "").lower()

	@property
	def is_admin(self) -> bool:
		return self.role_name == "admin"

	@property
	def is_pcb(self) -> bool:
		return self.role_name == "pcb"

	@property
	def is_industry_owner(self) -> bool:
		return self.role_name == "industry_owner"

	def to_dict(self) -> dict:
		return {
			"id": self.id,
			"name": self.name,
			"email": self.email,
			"role": self.role_name,
			"verification": self.is_verified,
			"industry_id": self.industry_id,
		}


class AuditLog(db.Model):
	__tablename__ = "audit_logs"

	id = db.Column(db.Integer, primary_key=True)
	user_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=True)
	action_type = db.Column(db.String(50), nullable=False)
	ip_address = db.Column(db.String(64), nullable=True)
	user_agent = db.Column(db.String(255), nullable=True)
	context_entity = db.Column(db.String(120), nullable=True)
	timestamp = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

	user = db.relationship("User", back_populates="audit_logs")


class Sector(db.Model):
	__tablename__ = "sectors"

	id = db.Column(db.Integer, primary_key=True)
	sector_name = db.Column(db.String(120), unique=True, nullable=False, index=True)
	count = db.Column(db.Integer, nullable=False, default=0)

	__table_args__ = (
		db.CheckConstraint("count >= 0", name="ck_sector_count_non_negative"),
	)

	def to_dict(self) -> dict:
		return {"id": self.id, "sector_name": self.sector_name, "count": self.count}


class Industry(db.Model):
	__tablename__ = "industries"

	id = db.Column(db.Integer, primary_key=True)
	name = db.Column(db.String(200), nullable=False)
	industry_code = db.Column(db.String(64), unique=True, nullable=False, index=True)
	industry_type = db.Column(db.String(120), nullable=False, index=True)
	owner_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=True, index=True)
	location = db.Column(db.String(255), nullable=True)
	phone_number = db.Column(db.String(32), nullable=True)
	description = db.Column(db.Text, nullable=True)
	registration_number = db.Column(db.String(120), nullable=True)
	water_source = db.Column(db.String(255), nullable=True)
	daily_water_consumption = db.Column(db.Float, nullable=True)
	wastewater_generation = db.Column(db.Float, nullable=True)
	wastewater_treatment_methods = db.Column(db.String(500), nullable=True)
	treated_water_reuse = db.Column(db.String(120), nullable=True)
	discharge_points = db.Column(db.String(500), nullable=True)
	environmental_clearance_certificate = db.Column(db.String(120), nullable=True)
	pcb_approval_status = db.Column(db.String(120), nullable=True)
	last_environmental_audit_date = db.Column(db.Date, nullable=True)
	violations_reported = db.Column(db.Text, nullable=True)
	fine_or_legal_actions_taken = db.Column(db.Text, nullable=True)
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

	owner = db.relationship("User", back_populates="owned_industries", foreign_keys=[owner_id])
	samples = db.relationship(
		"WaterQualitySample",
		back_populates="industry",
		lazy="dynamic",
		order_by="WaterQualitySample.measured_at",
	)
	alerts = db.relationship("Alert", back_populates="industry", lazy="dynamic")

	def to_dict(self) -> dict:
		audit_date = self.last_environmental_audit_date
		return {
			"id": self.id,
			"name": self.name,
			"industry_code": self.industry_code,
			"industry_type": self.industry_type,
			"owner_id": self.owner_id,
			"location": self.location,
			"phone_number": self.phone_number,
			"description": self.description,
			"registration_number": self.registration_number,
			"water_source": self.water_source,
			"daily_water_consumption": self.daily_water_consumption,
			"wastewater_generation": self.wastewater_generation,
			"wastewater_treatment_methods": self.wastewater_treatment_methods,
			"treated_water_reuse": self.treated_water_reuse,
			"discharge_points": self.discharge_points,
			"environmental_clearance_certificate": self.environmental_clearance_certificate,
			"pcb_approval_status": self.pcb_approval_status,
			"last_environmental_audit_date": audit_date.isoformat() if audit_date else None,
			"violations_reported": self.violations_reported,
			"fine_or_legal_actions_taken": self.fine_or_legal_actions_taken,
			"created_at": self.created_at.isoformat() if self.created_at else None,
		}


class WaterQualitySample(db.Model):
	__tablename__ = "water_quality"

	id = db.Column(db.Integer, primary_key=True)
	industry_id = db.Column(db.Integer, db.ForeignKey("industries.id"), nullable=False, index=True)
	kit_type = db.Column(db.String(20), nullable=False, index=True)
	measured_at = db.Column(db.DateTime, nullable=False, index=True)
	ph = db.Column(db.Float, nullable=True)
	turbidity = db.Column(db.Float, nullable=True)
	temperature = db.Column(db.Float, nullable=True)
	tds = db.Column(db.Float, nullable=True)
	dissolved_oxygen = db.Column(db.Float, nullable=True)
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

	__table_args__ = (
		db.Index("ix_water_quality_industry_measured", "industry_id", "measured_at"),
	)

	industry = db.relationship("Industry", back_populates="samples")

	def to_dict(self) -> dict:
		payload = {
			"id": self.id,
			"industry_id": self.industry_id,
			"kit_type": self.kit_type,
			"measured_at": self.measured_at.isoformat() if self.measured_at else None,
		}
		for field in READING_FIELDS:
			payload[field] = getattr(self, field)
		return payload


class Alert(db.Model):
	__tablename__ = "alerts"

	id = db.Column(db.Integer, primary_key=True)
	industry_id = db.Column(db.Integer, db.ForeignKey("industries.id"), nullable=True, index=True)
	industry_code = db.Column(db.String(64), nullable=False, index=True)
	industry_name = db.Column(db.String(200), nullable=False)
	industry_type = db.Column(db.String(120), nullable=True, index=True)
	parameter = db.Column(db.String(120), nullable=False)
	current_value = db.Column(db.Float, nullable=False)
	threshold_value = db.Column(db.Float, nullable=True)
	threshold_label = db.Column(db.String(120), nullable=True)
	alert_datetime = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)
	# Lookup key back to the triggering sample, not a foreign key.
	water_quality_measured_at = db.Column(db.DateTime, nullable=False)

	__table_args__ = (
		db.UniqueConstraint(
			"industry_code",
			"parameter",
			"water_quality_measured_at",
			name="uq_alert_industry_parameter_sample",
		),
	)

	industry = db.relationship("Industry", back_populates="alerts")

	def to_dict(self) -> dict:
		return {
			"id": self.id,
			"industry_id": self.industry_id,
			"industry_code": self.industry_code,
			"industry_name": self.industry_name,
			"industry_type": self.industry_type,
			"parameter": self.parameter,
			"current_value": self.current_value,
			"threshold_value": self.threshold_value,
			"threshold_label": self.threshold_label,
			"alert_datetime": self.alert_datetime.isoformat() if self.alert_datetime else None,
			"water_quality_measured_at": self.water_quality_measured_at.isoformat()
			if self.water_quality_measured_at
			else None,
		}


class SentEmail(db.Model):
	__tablename__ = "email_sent"

	id = db.Column(db.Integer, primary_key=True)
	recipient = db.Column(db.String(255), nullable=False, index=True)
	subject = db.Column(db.String(255), nullable=False)
	content = db.Column(db.Text, nullable=False)
	sent_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)
	delivery_status = db.Column(db.String(20), nullable=False, default="SENT", index=True)
	error_message = db.Column(db.Text, nullable=True)

	__table_args__ = (
		db.CheckConstraint(
			"delivery_status IN (" + ",".join(f"'{s}'" for s in EMAIL_DELIVERY_STATUSES) + ")",
			name="ck_email_sent_status",
		),
	)

	def to_dict(self) -> dict:
		return {
			"id": self.id,
			"to": self.recipient,
			"subject": self.subject,
			"content": self.content,
			"sentAt": self.sent_at.isoformat() if self.sent_at else None,
			"delivery_status": self.delivery_status,
		}
