"""Binary matching of 3x3x3 voxel neighbourhoods against masked templates.

A neighbourhood is a 27-bit integer; bit 13 is the centre voxel.
"""

from __future__ import annotations

from dataclasses import dataclass

NEIGHBORHOOD_BITS = 27
_BITS_MASK = (1 << NEIGHBORHOOD_BITS) - 1

NEIGHBOR_MASK_6 = 4281360
NEIGHBOR_MASK_18 = 49012410


@dataclass(frozen=True)
class VoxelTemplate:
    """Bits set in neighbor_mask must equal the same bits of neighbor_template."""

    neighbor_mask: int
    neighbor_template: int


_DELETION_TEMPLATES = (
    # A
    (1904135, 65536), (4194815, 4194304), (19190345, 16384),
    (76699940, 4096), (117671360, 1024), (133955600, 16),
    # B
    (2971147, 81920), (4248283, 4210688), (4263487, 4259840),
    (4348342, 4198400), (4425208, 4195328), (10050598, 69632),
    (16584208, 65552), (52548808, 17408), (57463312, 16400),
    (109270432, 5120), (114972688, 4112), (132350992, 1040),
    # C
    (7165456, 81936), (4314328, 4211712), (4283446, 4263936),
    (4281883, 4276224), (4412848, 4199424), (14244880, 69648),
    (56742928, 17424), (113464336, 5136),
    # D
    (253440, 512), (253440, 2048), (253440, 32768), (253440, 131072),
    (14700600, 8), (14700600, 32), (14700600, 2097152), (14700600, 8388608),
    (38339730, 2), (38339730, 128), (38339730, 524288), (38339730, 33554432),
)

_CONNECTIVITY_TEMPLATES = (
    # G: end points
    (4281360, 16), (4281360, 1024), (4281360, 4096),
    (4281360, 16384), (4281360, 65536), (4281360, 4194304),
    # H: straight lines
    (87226, 16), (4742674, 1024), (6395416, 4096),
    (12799024, 16384), (37998736, 65536), (48845824, 4194304),
)

_CORNER_TEMPLATES = (
    (20766719, 16384), (20815871, 65536), (24944639, 4194304),
    (77488127, 4096), (120050687, 16384), (127127039, 1024),
    (127130111, 4096), (124228607, 4194304), (134012495, 16384),
    (134106935, 16), (134111015, 4096), (134061647, 65536),
    (134190041, 16), (134191049, 1024), (134203892, 16),
    (134204900, 1024), (134207972, 4096), (134206409, 16384),
    (134172455, 65536), (131320319, 4194304),
)


class VoxelTemplateMatcher:
    """A list of templates; a neighbourhood fits if it matches any of them."""

    def __init__(self) -> None:
        self._templates: list[VoxelTemplate] = []

    @property
    def templates(self) -> tuple[VoxelTemplate, ...]:
        return tuple(self._templates)

    def add_template(self, voxel_template: VoxelTemplate) -> None:
        self._templates.append(voxel_template)

    def add_integer_template(self, neighbor_mask: int, neighbor_template: int) -> None:
        self._templates.append(
            VoxelTemplate(neighbor_mask & _BITS_MASK, neighbor_template & _BITS_MASK)
        )

    def fits_templates(self, voxel_neighbors: int) -> bool:
        neighbors = voxel_neighbors & _BITS_MASK
        return any(
            (neighbors ^ t.neighbor_template) & t.neighbor_mask == 0
            for t in self._templates
        )

    def _add_all(self, pairs) -> None:
        for mask, template in pairs:
            self.add_integer_template(mask, template)

    def set_deletion_templates(self) -> None:
        """Deletion templates for 3D thinning (She et al.)."""
        self._add_all(_DELETION_TEMPLATES)

    def set_connectivity_templates(self) -> None:
        """End-point and straight-line connectivity templates."""
        self._add_all(_CONNECTIVITY_TEMPLATES)

    def set_corner_templates(self) -> None:
        """Templates that detect corners."""
        self._add_all(_CORNER_TEMPLATES)