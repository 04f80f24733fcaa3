from __future__ import annotations

from ..extensions import db
from garagepos.time_utils import to_utc_z, to_iso_date


class Setting(db.Model):
    """
    Key-value runtime settings edited from the GUI (e.g. email notification).

    Values are JSON so a setting may hold a whole object.
    """
    __tablename__ = "settings"
    __table_args__ = (
        db.UniqueConstraint("key", name="uq_settings_key"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(128), nullable=False, index=True)
    value = db.Column(db.JSON, nullable=True)

    updated_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self):
        return {
            "id": self.id,
            "key": self.key,
            "value": self.value,
            "updated_by_user_id": self.updated_by_user_id,
            "updated_at": to_utc_z(self.updated_at),
        }


class JournalEntry(db.Model):
    """
    Append-only text journal (sales, day start, day end).

    Mirrors the daily Journal_<date>.txt file when a journal folder is set.
    """
    __tablename__ = "journal_entries"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    kind = db.Column(db.String(32), nullable=False, index=True)
    business_date = db.Column(db.Date, nullable=False, index=True)
    content = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    def to_dict(self):
        return {
            "id": self.id,
            "kind": self.kind,
            "business_date": to_iso_date(self.business_date),
            "content": self.content,
            "created_at": to_utc_z(self.created_at),
        }
