from __future__ import annotations

from ..extensions import db
from ..money import from_bps
from ..time_utils import to_utc_z


class Company(db.Model):
    """
    Multi-tenant root: every repair shop is a Company.

    All locations, users, customers, invoices and drawer sessions belong to
    exactly one company. No data may cross company boundaries.
    """
    __tablename__ = "companies"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    code = db.Column(db.String(32), nullable=True, unique=True, index=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def __repr__(self) -> str:
        return f"<Company id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "isActive": self.is_active,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }


class Location(db.Model):
    """
    Physical shop within a company. Each location runs its own cash drawer.

    Tax settings are location-level: tax_rate_bps is the default rate applied
    to new invoices raised at the location when tax_enabled is set.
    """
    __tablename__ = "locations"
    __table_args__ = (
        db.UniqueConstraint("company_id", "name", name="uq_locations_company_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)

    tax_name = db.Column(db.String(100), nullable=False, default="Sales Tax")
    tax_rate_bps = db.Column(db.Integer, nullable=False, default=0)  # 850 = 8.5%
    tax_enabled = db.Column(db.Boolean, nullable=False, default=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    company = db.relationship("Company", backref=db.backref("locations", lazy=True))

    def __repr__(self) -> str:
        return f"<Location id={self.id} name={self.name!r} company_id={self.company_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "companyId": self.company_id,
            "name": self.name,
            "taxName": self.tax_name,
            "taxRate": from_bps(self.tax_rate_bps),
            "taxEnabled": self.tax_enabled,
            "isActive": self.is_active,
            "createdAt": to_utc_z(self.created_at),
        }
