from datetime import datetime

from app import db  # This stays here; app.py imports models inside its app context

# =====================================
# KEY-VALUE STORE
# =====================================

class StoreEntry(db.Model):
    """One JSON document per store key (a list for collections, a scalar for stamps)."""
    __tablename__ = "store_entry"

    key = db.Column(db.String(120), primary_key=True)
    value = db.Column(db.Text, nullable=False, default="null")
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, index=True)

    def __repr__(self):
        return f"<StoreEntry {self.key}>"
