"""
Octree color quantization.

The RGB cube is indexed by successive bit planes: a node at level L covers
every color sharing the top L bits of each channel. Level 7 nodes are
leaves, so the lowest bit of each channel never splits the tree. Nodes live
in flat arrays (an arena) addressed by integer handles, ordered by level.
"""

from typing import List

import numpy as np
from loguru import logger

from colorengine.schemas import ExtractionConfig, ExtractedColor
from .base import BaseQuantizer, describe_palette, rank_by_count
from .pixels import channel_means


MAX_LEVEL = 7

# bytes per sample for the int64 channel copies, leaf keys and inverse in build()
SAMPLE_BYTES = 64
# bytes per node: arena arrays plus per-level np.unique temporaries
NODE_BYTES = 96


def leaf_keys(samples: np.ndarray) -> np.ndarray:
    """21-bit key of the level-7 node each sample falls in (top 7 bits per channel)."""
    top7 = samples.astype(np.int64) >> 1
    return (top7[:, 0] << 14) | (top7[:, 1] << 7) | top7[:, 2]


def node_bound(distinct_leaves: int) -> int:
    """Most nodes a tree with this many leaves can hold: level L has at most 8**L."""
    return sum(min(distinct_leaves, 8 ** lvl) for lvl in range(MAX_LEVEL + 1))


class OctreeArena:
    """
    Flat-array octree for one quantize() call.

    Every node carries the pixel count and channel sums of its whole subtree,
    so collapsing a node only has to retire its children.
    """

    def __init__(self, pixel_count: np.ndarray, sums: np.ndarray,
                 level: np.ndarray, parent: np.ndarray):
        self.pixel_count = pixel_count
        self.sums = sums
        self.level = level
        self.parent = parent
        self.is_leaf = level == MAX_LEVEL
        self.absorbed = np.zeros(level.shape[0], dtype=bool)
        self.leaf_count = int(self.is_leaf.sum())

        # children of node h are child_handles[child_start[h]:child_start[h + 1]]
        has_parent = np.flatnonzero(parent >= 0)
        self.child_handles = has_parent[np.argsort(parent[has_parent], kind="stable")]
        counts = np.bincount(parent[has_parent], minlength=level.shape[0])
        self.child_start = np.concatenate(([0], np.cumsum(counts)))

        # reducible nodes per level; pop() yields the fewest pixels, ties lowest handle
        self._reducible: List[List[int]] = []
        for lvl in range(MAX_LEVEL):
            handles = np.flatnonzero(level == lvl)
            order = np.lexsort((-handles, -pixel_count[handles]))
            self._reducible.append(handles[order].tolist())

    @property
    def node_count(self) -> int:
        return int(self.level.shape[0])

    @classmethod
    def build(cls, samples: np.ndarray) -> "OctreeArena":
        """
        Insert every sample, accumulating count and sums along its path.

        Samples sharing a leaf are grouped first, then each level is built
        from the leaf keys with np.unique.
        """
        if samples.shape[0] == 0:
            empty = np.zeros(0, dtype=np.int64)
            return cls(empty, np.zeros((0, 3), dtype=np.int64), np.zeros(0, dtype=np.int8), empty)

        channels = samples.astype(np.int64)
        unique_leaves, leaf_of_sample = np.unique(leaf_keys(samples), return_inverse=True)
        leaf_of_sample = leaf_of_sample.reshape(-1)

        leaf_counts = np.bincount(leaf_of_sample).astype(np.int64)
        leaf_sums = np.stack(
            [np.bincount(leaf_of_sample, weights=channels[:, c]) for c in range(3)], axis=1
        )
        lr = (unique_leaves >> 14) & 0x7F
        lg = (unique_leaves >> 7) & 0x7F
        lb = unique_leaves & 0x7F

        counts_by_level, sums_by_level, levels, parents = [], [], [], []
        node_of_leaf = None
        offset = 0
        for lvl in range(MAX_LEVEL + 1):
            shift = MAX_LEVEL - lvl
            keys = ((lr >> shift) << (2 * lvl)) | ((lg >> shift) << lvl) | (lb >> shift)
            unique_keys, first_leaf, inverse = np.unique(keys, return_index=True, return_inverse=True)
            inverse = inverse.reshape(-1)
            n_nodes = unique_keys.shape[0]

            counts = np.bincount(inverse, weights=leaf_counts, minlength=n_nodes)
            sums = np.stack(
                [np.bincount(inverse, weights=leaf_sums[:, c], minlength=n_nodes) for c in range(3)],
                axis=1,
            )
            if node_of_leaf is None:
                parent = np.full(n_nodes, -1, dtype=np.int64)
            else:
                parent = node_of_leaf[first_leaf]

            counts_by_level.append(np.rint(counts).astype(np.int64))
            sums_by_level.append(np.rint(sums).astype(np.int64))
            levels.append(np.full(n_nodes, lvl, dtype=np.int8))
            parents.append(parent)

            node_of_leaf = offset + inverse
            offset += n_nodes

        return cls(
            np.concatenate(counts_by_level),
            np.concatenate(sums_by_level),
            np.concatenate(levels),
            np.concatenate(parents),
        )

    def children(self, handle: int) -> np.ndarray:
        return self.child_handles[self.child_start[handle]:self.child_start[handle + 1]]

    def deepest_reducible_level(self) -> int:
        """Deepest level that still holds an unmerged inner node, or -1."""
        for lvl in range(MAX_LEVEL - 1, -1, -1):
            if self._reducible[lvl]:
                return lvl
        return -1

    def merge(self, handle: int) -> None:
        """Collapse a node into a leaf; its accumulators already hold the subtree."""
        kids = self.children(handle)
        self.absorbed[kids] = True
        self.is_leaf[handle] = True
        self.leaf_count -= kids.shape[0] - 1

    def reduce(self, target: int) -> int:
        """
        Collapse deepest nodes until at most ``target`` leaves remain.

        Returns:
            Number of nodes merged
        """
        merged = 0
        while self.leaf_count > target:
            lvl = self.deepest_reducible_level()
            if lvl < 0:
                break
            self.merge(self._reducible[lvl].pop())
            merged += 1
        return merged

    def leaves(self) -> np.ndarray:
        """Handles of live leaves with pixels."""
        return np.flatnonzero(self.is_leaf & ~self.absorbed & (self.pixel_count > 0))


class OctreeQuantizer(BaseQuantizer):
    """Octree quantizer: build the bit-plane tree, collapse deepest nodes first."""

    algorithm = "octree"

    @staticmethod
    def build_tree(samples: np.ndarray) -> OctreeArena:
        return OctreeArena.build(samples)

    def extract(self, samples: np.ndarray, config: ExtractionConfig) -> List[ExtractedColor]:
        target = config.target_color_count
        tree = self.build_tree(samples)
        initial_leaves = tree.leaf_count
        merged = tree.reduce(target)
        logger.debug(f"octree: {tree.node_count} nodes, {initial_leaves} leaves, "
                     f"merged {merged} nodes down to {tree.leaf_count} leaves")

        leaves = tree.leaves()
        colors = channel_means(tree.sums[leaves], tree.pixel_count[leaves])
        colors, counts = rank_by_count(colors, tree.pixel_count[leaves], target)
        return describe_palette(colors, counts, samples)

    def estimate_working_set(self, samples: np.ndarray, target: int) -> int:
        sample_count = samples.shape[0]
        distinct = int(np.unique(leaf_keys(samples)).shape[0]) if sample_count else 0
        tree_bytes = sample_count * SAMPLE_BYTES + node_bound(distinct) * NODE_BYTES
        return tree_bytes + self.scoring_working_set(sample_count, target)
