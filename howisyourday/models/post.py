# models/post.py

from howisyourday.models.user import db, User
from howisyourday.shared_data import POST_LIMITS, POST_STATUS, utcnow


class PostTag(db.Model):
    """One tag on one post; position keeps the author's ordering."""
    __tablename__ = 'post_tags'

    post_id = db.Column(db.Integer, db.ForeignKey('posts.id', ondelete='CASCADE'), primary_key=True)
    tag = db.Column(db.String(POST_LIMITS['TAG_MAX_LENGTH']), primary_key=True, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)

    def __repr__(self):
        return f'<PostTag {self.post_id}:{self.tag}>'


class Post(db.Model):
    __tablename__ = 'posts'

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    slug = db.Column(db.String(255), unique=True, nullable=False, index=True)
    excerpt = db.Column(db.Text)
    content = db.Column(db.Text, nullable=False)
    author_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    status = db.Column(db.String(20), nullable=False, default=POST_STATUS['DRAFT'])
    featured_image = db.Column(db.String(2048))
    published_at = db.Column(db.DateTime, index=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    author = db.relationship(User, lazy='joined')
    tag_rows = db.relationship(PostTag, order_by=PostTag.position,
                               cascade='all, delete-orphan', lazy='selectin')

    @property
    def tags(self):
        return [row.tag for row in self.tag_rows]

    @tags.setter
    def tags(self, values):
        current = {row.tag: row for row in self.tag_rows}
        rows = []
        for position, tag in enumerate(values or []):
            row = current.get(tag) or PostTag(tag=tag)
            row.position = position
            rows.append(row)
        self.tag_rows = rows

    @property
    def is_published(self):
        return self.status == POST_STATUS['PUBLISHED']

    def to_dict(self, include_author=False):
        data = {
            'id': self.id,
            'title': self.title,
            'slug': self.slug,
            'excerpt': self.excerpt,
            'content': self.content,
            'author_id': self.author_id,
            'status': self.status,
            'featured_image': self.featured_image,
            'tags': self.tags or None,
            'published_at': self.published_at.isoformat() if self.published_at else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_author:
            data['author_name'] = self.author.display_name if self.author else None
            data['author_email'] = self.author.email if self.author else None
        return data

    def __repr__(self):
        return f'<Post {self.slug}>'


class Comment(db.Model):
    """Reader comment on a post. Stored only; no routes expose it yet."""
    __tablename__ = 'comments'

    id = db.Column(db.Integer, primary_key=True)
    post_id = db.Column(db.Integer, db.ForeignKey('posts.id'), nullable=False, index=True)
    author_name = db.Column(db.String(120))
    author_email = db.Column(db.String(255))
    body = db.Column(db.Text, nullable=False)
    is_moderated = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    post = db.relationship(Post)

    def to_dict(self):
        return {
            'id': self.id,
            'post_id': self.post_id,
            'author_name': self.author_name,
            'author_email': self.author_email,
            'body': self.body,
            'is_moderated': bool(self.is_moderated),
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f'<Comment {self.id} on post {self.post_id}>'
