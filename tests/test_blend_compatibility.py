import pytest

from cellar.extensions import db
from cellar.models import Recipe
from cellar.services.blend_compatibility import load_batches, validate_blend
from cellar.services.errors import NotFoundError


def test_same_strain_different_styles_only_warns(app, seed, make_batch):
    with app.app_context():
        pale = make_batch(recipe_id=seed.pale_id)
        ipa = make_batch(recipe_id=seed.ipa_id)

        result = validate_blend(seed.org_id, [pale, ipa])

        assert result.compatible is True
        assert result.errors == []
        assert 'Blending different styles: American IPA, American Pale Ale' in result.warnings
        assert 'Blending different recipes: House Pale, West Coast IPA' in result.warnings


def test_different_yeast_strains_are_incompatible(app, seed, make_batch):
    with app.app_context():
        pale = make_batch(recipe_id=seed.pale_id)
        stout = make_batch(recipe_id=seed.stout_id)

        result = validate_blend(seed.org_id, [pale, stout])

        assert result.compatible is False
        assert result.errors == ['Different yeast strains cannot be blended: US-05, WLP004']
        assert result.to_dict()['compatible'] is False


def test_same_recipe_has_no_warnings(app, seed, make_batch):
    with app.app_context():
        first = make_batch(recipe_id=seed.pale_id)
        second = make_batch(recipe_id=seed.pale_id)

        result = validate_blend(seed.org_id, [first, second])

        assert result.compatible is True
        assert result.warnings == []


def test_recipe_without_strain_skips_strain_check(app, seed, make_batch):
    with app.app_context():
        house = Recipe(organization_id=seed.org_id, name='House Blend', style='American Pale Ale')
        db.session.add(house)
        db.session.commit()

        result = validate_blend(seed.org_id, [make_batch(recipe_id=house.id), make_batch(recipe_id=seed.pale_id)])

        assert result.compatible is True


def test_unknown_and_foreign_batches_are_not_found(app, seed, make_batch):
    with app.app_context():
        own = make_batch()

        with pytest.raises(NotFoundError):
            validate_blend(seed.org_id, [own, 424242])
        with pytest.raises(NotFoundError):
            validate_blend(seed.org_id, [own, seed.other_batch_id])


def test_load_batches_keeps_request_order(app, seed, make_batch):
    with app.app_context():
        first = make_batch()
        second = make_batch()

        batches = load_batches(seed.org_id, [second, first, second])

        assert [batch.id for batch in batches] == [second, first]
