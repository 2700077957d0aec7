# models/push_token.py
from howisyourday.models.user import db
from howisyourday.shared_data import PUSH_TOKEN_MAX_LENGTH, utcnow


class PushToken(db.Model):
    __tablename__ = 'push_tokens'

    id = db.Column(db.Integer, primary_key=True)
    token = db.Column(db.String(PUSH_TOKEN_MAX_LENGTH), unique=True, nullable=False)
    platform = db.Column(db.String(16), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'token': self.token,
            'platform': self.platform,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f'<PushToken {self.platform} {self.token[:20]}>'
