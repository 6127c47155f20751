from ..extensions import db
from .mixins import ScopedModelMixin, TimestampMixin


class Recipe(ScopedModelMixin, TimestampMixin, db.Model):
    """Recipe reference data; the cellar only reads it for blend compatibility."""
    __tablename__ = 'recipe'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    style = db.Column(db.String(64), nullable=True)
    yeast_strain = db.Column(db.String(64), nullable=True)
    target_volume = db.Column(db.Float, nullable=True)

    __table_args__ = (
        db.UniqueConstraint('organization_id', 'name', name='uq_recipe_org_name'),
    )

    def __repr__(self):
        return f'<Recipe {self.id} {self.name}>'
