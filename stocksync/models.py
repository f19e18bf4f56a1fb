from datetime import datetime

from stocksync.extensions import db


class SyncRecord(db.Model):
    """One record of a list collection, stored as the JSON the client sent."""

    __tablename__ = "sync_record"

    id = db.Column(db.Integer, primary_key=True)
    collection = db.Column(db.String(40), nullable=False, index=True)
    record_id = db.Column(db.String(120), nullable=True)
    position = db.Column(db.Integer, nullable=False, default=0)
    payload = db.Column(db.JSON, nullable=False)


class SyncSetting(db.Model):
    __tablename__ = "sync_setting"

    key = db.Column(db.String(120), primary_key=True)
    value = db.Column(db.JSON, nullable=True)


class CollectionVersion(db.Model):
    """Last accepted push version of one collection from one writer."""

    __tablename__ = "collection_version"

    collection = db.Column(db.String(40), primary_key=True)
    client_id = db.Column(db.String(64), primary_key=True, default="")
    version = db.Column(db.BigInteger, nullable=False, default=0)
    updated_at = db.Column(
        db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )
