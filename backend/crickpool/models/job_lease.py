from datetime import datetime

from crickpool.extensions import db


class JobLease(db.Model):
    __tablename__ = "job_leases"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False, unique=True)
    owner = db.Column(db.String(128), nullable=False, default="")

    acquired_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    expires_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    def to_dict(self):
        return {
            "name": self.name,
            "owner": self.owner,
            "acquired_at": self.acquired_at.isoformat() if self.acquired_at else None,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "active": bool(self.expires_at and self.expires_at > datetime.utcnow()),
        }
