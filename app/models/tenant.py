"""
Discipline Case Platform
Tenant model — organisation boundary for every discipline record.
"""

from datetime import datetime, timezone

from app.models import db


class Tenant(db.Model):
    __tablename__ = "tenants"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    slug = db.Column(db.String(100), unique=True, nullable=False)
    is_active = db.Column(db.Boolean, default=True)
    settings = db.Column(db.JSON, default=dict,
                         comment="Tenant options; holds complaint_counter for case numbering")
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def next_complaint_sequence(self) -> int:
        """Advance and return the per-tenant complaint counter.

        The JSON column is reassigned so the change is detected on flush.
        """
        settings = dict(self.settings or {})
        counter = int(settings.get("complaint_counter", 0)) + 1
        settings["complaint_counter"] = counter
        self.settings = settings
        return counter

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "is_active": self.is_active,
            "settings": self.settings or {},
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<Tenant {self.slug}>"
