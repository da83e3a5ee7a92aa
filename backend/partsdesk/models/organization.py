from __future__ import annotations

from ..extensions import db
from partsdesk.time_utils import to_utc_z


class Company(db.Model):
    """
    Top of the ownership tree: a distribution company.

    Company ids are short opaque strings assigned at creation ("1", "ACME").
    Stores belong to exactly one company; company-scoped users (admin and
    below) see only their own company.
    """
    __tablename__ = "companies"

    id = db.Column(db.String(50), primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    address = db.Column(db.Text, nullable=True)
    contact_email = db.Column(db.String(255), nullable=True)
    contact_phone = db.Column(db.String(50), nullable=True)
    logo_url = db.Column(db.Text, nullable=True)

    created_by_user_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Company id={self.id!r} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "address": self.address,
            "contact_email": self.contact_email,
            "contact_phone": self.contact_phone,
            "logo_url": self.logo_url,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Store(db.Model):
    """
    A branch of a company, keyed by its branch code (e.g. "NYC001").

    Orders are placed against a branch; store-scoped users see only the
    orders of their own branch.
    """
    __tablename__ = "stores"
    __table_args__ = (
        db.Index("ix_stores_company_id", "company_id"),
    )

    code = db.Column(db.String(15), primary_key=True)
    company_id = db.Column(db.String(50), db.ForeignKey("companies.id"), nullable=False)
    name = db.Column(db.String(255), nullable=True)
    address = db.Column(db.Text, nullable=True)
    phone = db.Column(db.String(50), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    manager_name = db.Column(db.String(255), nullable=True)
    manager_mobile = db.Column(db.String(50), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    company = db.relationship("Company", backref=db.backref("stores", lazy=True))

    def __repr__(self) -> str:
        return f"<Store code={self.code!r} company_id={self.company_id!r}>"

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "company_id": self.company_id,
            "company_name": self.company.name if self.company else None,
            "name": self.name,
            "address": self.address,
            "phone": self.phone,
            "email": self.email,
            "manager_name": self.manager_name,
            "manager_mobile": self.manager_mobile,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Retailer(db.Model):
    """
    A workshop or parts shop that buys from a store.

    store_code is the retailer's home branch. It drives which store-scoped
    users see the retailer in their lists; operational roles may still
    reference any retailer when placing orders.
    """
    __tablename__ = "retailers"
    __table_args__ = (
        db.Index("ix_retailers_store_code", "store_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    crm_id = db.Column(db.String(25), nullable=True)
    name = db.Column(db.String(255), nullable=False)
    contact_person = db.Column(db.String(255), nullable=True)
    address = db.Column(db.Text, nullable=True)
    mobile = db.Column(db.String(50), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    gst_no = db.Column(db.String(50), nullable=True)
    credit_limit = db.Column(db.Numeric(15, 2), nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    is_confirmed = db.Column(db.Boolean, nullable=False, default=False)

    store_code = db.Column(db.String(15), db.ForeignKey("stores.code"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    store = db.relationship("Store", backref=db.backref("retailers", lazy=True))

    def __repr__(self) -> str:
        return f"<Retailer id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "crm_id": self.crm_id,
            "name": self.name,
            "contact_person": self.contact_person,
            "address": self.address,
            "mobile": self.mobile,
            "email": self.email,
            "gst_no": self.gst_no,
            "credit_limit": float(self.credit_limit or 0),
            "is_active": self.is_active,
            "is_confirmed": self.is_confirmed,
            "store_code": self.store_code,
            "created_at": to_utc_z(self.created_at),
        }
