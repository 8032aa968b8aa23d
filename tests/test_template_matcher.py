import pytest

from gvdskeleton.template_matcher import (
    NEIGHBOR_MASK_6,
    NEIGHBOR_MASK_18,
    VoxelTemplate,
    VoxelTemplateMatcher,
)


def test_empty_matcher_fits_nothing():
    assert VoxelTemplateMatcher().fits_templates(0) is False


def test_mask_limits_compared_bits():
    matcher = VoxelTemplateMatcher()
    matcher.add_integer_template(0b111, 0b101)
    assert matcher.fits_templates(0b101)
    assert matcher.fits_templates(0b1101)
    assert not matcher.fits_templates(0b100)


def test_add_template_object():
    matcher = VoxelTemplateMatcher()
    matcher.add_template(VoxelTemplate(neighbor_mask=0b11, neighbor_template=0b10))
    assert matcher.fits_templates(0b10)
    assert not matcher.fits_templates(0b11)
    assert matcher.templates == (VoxelTemplate(0b11, 0b10),)


def test_integer_template_is_truncated_to_27_bits():
    matcher = VoxelTemplateMatcher()
    matcher.add_integer_template(-1, 0)
    assert matcher.templates[0].neighbor_mask == (1 << 27) - 1
    assert matcher.fits_templates(0)
    assert matcher.fits_templates(1 << 27)
    assert not matcher.fits_templates(1)


@pytest.mark.parametrize(
    "setter",
    ["set_deletion_templates", "set_connectivity_templates", "set_corner_templates"],
)
def test_each_template_value_fits_its_own_set(setter):
    matcher = VoxelTemplateMatcher()
    getattr(matcher, setter)()
    assert matcher.templates
    for template in matcher.templates:
        assert matcher.fits_templates(template.neighbor_template)


def test_deletion_template_a_first_entry():
    matcher = VoxelTemplateMatcher()
    matcher.set_deletion_templates()
    assert matcher.templates[0] == VoxelTemplate(1904135, 65536)
    assert matcher.fits_templates(65536)


def test_connectivity_masks():
    assert bin(NEIGHBOR_MASK_6).count("1") == 6
    assert bin(NEIGHBOR_MASK_18).count("1") == 18
    matcher = VoxelTemplateMatcher()
    matcher.add_integer_template(NEIGHBOR_MASK_18, NEIGHBOR_MASK_6)
    # The 6-connected set lies inside the 18-connected set.
    assert matcher.fits_templates(NEIGHBOR_MASK_6)
    # The center bit lies outside the 18-connected mask and is ignored.
    assert matcher.fits_templates(NEIGHBOR_MASK_6 | (1 << 13))
    assert not matcher.fits_templates(NEIGHBOR_MASK_18)
    assert not matcher.fits_templates(0)