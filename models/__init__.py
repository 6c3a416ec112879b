"""Core data models for the entity directory and citizen complaints."""
from datetime import datetime

from extensions import db


COMPLAINT_STATUSES: tuple[str, ...] = (
	"pending",
	"in_progress",
	"resolved",
	"rejected",
)

DEFAULT_COMPLAINT_STATUS = "pending"

# Largest value a signed 32-bit INTEGER primary key can hold.
MAX_ROW_ID = 2**31 - 1

DEFAULT_ENTITIES: tuple[dict, ...] = (
	{
		"name": "Alcaldía de Tunja",
		"entity_type": "Municipal",
		"contact_email": "alcaldia@tunja.gov.co",
		"contact_phone": "3001234567",
		"address": "Plaza de Bolívar",
	},
	{
		"name": "Gobernación de Boyacá",
		"entity_type": "Departamental",
		"contact_email": "info@boyaca.gov.co",
		"contact_phone": "3007654321",
		"address": "Carrera 10 No. 18-35",
	},
	{
		"name": "UPTC",
		"entity_type": "Educativa",
		"contact_email": "rectoria@uptc.edu.co",
		"contact_phone": "3009876543",
		"address": "Avenida Central del Norte",
	},
	{
		"name": "Hospital San Rafael",
		"entity_type": "Salud",
		"contact_email": "info@hsr.gov.co",
		"contact_phone": "3005551234",
		"address": "Calle 15 No. 10-50",
	},
	{
		"name": "Policía Nacional",
		"entity_type": "Seguridad",
		"contact_email": "policia@gov.co",
		"contact_phone": "3008887777",
		"address": "Carrera 9 No. 20-40",
	},
)


def _isoformat(value: datetime | None) -> str | None:
	return value.isoformat() if value else None


class Entity(db.Model):
	__tablename__ = "entities"

	id = db.Column(db.Integer, primary_key=True)
	name = db.Column(db.String(150), unique=True, nullable=False, index=True)
	entity_type = db.Column(db.String(50), nullable=True)
	contact_email = db.Column(db.String(255), nullable=True)
	contact_phone = db.Column(db.String(50), nullable=True)
	address = db.Column(db.String(255), nullable=True)
	active = db.Column(db.Boolean, nullable=False, default=True, index=True)
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

	__table_args__ = (
		db.CheckConstraint("length(trim(name)) > 0", name="ck_entity_name_not_blank"),
	)

	complaints = db.relationship(
		"Complaint",
		back_populates="entity",
		cascade="all, delete-orphan",
		passive_deletes=True,
	)

	def to_dict(self) -> dict:
		return {
			"id": self.id,
			"name": self.name,
			"entity_type": self.entity_type,
			"contact_email": self.contact_email,
			"contact_phone": self.contact_phone,
			"address": self.address,
			"active": self.active,
		}


class Complaint(db.Model):
	__tablename__ = "complaints"

	id = db.Column(db.Integer, primary_key=True)
	entity_id = db.Column(
		db.Integer,
		db.ForeignKey("entities.id", ondelete="CASCADE"),
		nullable=False,
		index=True,
	)
	description = db.Column(db.Text, nullable=False)
	status = db.Column(db.String(20), nullable=False, default=DEFAULT_COMPLAINT_STATUS, index=True)
	origin_ip = db.Column(db.String(64), nullable=True)
	user_agent = db.Column(db.String(255), nullable=True)
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)
	updated_at = db.Column(
		db.DateTime,
		default=datetime.utcnow,
		onupdate=datetime.utcnow,
		nullable=False,
	)

	__table_args__ = (
		db.CheckConstraint(
			"status IN ('pending','in_progress','resolved','rejected')",
			name="ck_complaint_status_valid",
		),
		db.Index("ix_complaints_entity_created", "entity_id", "created_at"),
	)

	entity = db.relationship("Entity", back_populates="complaints")

	def to_dict(self) -> dict:
		return {
			"id": self.id,
			"entity_id": self.entity_id,
			"entity_name": self.entity.name if self.entity else None,
			"description": self.description,
			"status": self.status,
			"created_at": _isoformat(self.created_at),
			"updated_at": _isoformat(self.updated_at),
		}
