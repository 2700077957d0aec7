# models/subscriber.py
from howisyourday.models.user import db
from howisyourday.shared_data import utcnow


class Subscriber(db.Model):
    __tablename__ = 'subscribers'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False)
    confirmed = db.Column(db.Boolean, nullable=False, default=False)
    confirm_token = db.Column(db.String(64), index=True)
    subscribed_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'confirmed': bool(self.confirmed),
            'confirm_token': self.confirm_token,
            'subscribed_at': self.subscribed_at.isoformat() if self.subscribed_at else None,
        }

    def __repr__(self):
        return f'<Subscriber {self.email}>'
