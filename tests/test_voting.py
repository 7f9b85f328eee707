"""
Tests for the Hough voting building blocks.

Test Coverage:
- Geometry: IoU, point-to-line distance, least-squares center fit
- Label partition: buckets, active classes, min-area boundary
- Vote field: channel layout
- Hypotheses: inferred box, registry bookkeeping and working queue
"""

import numpy as np
import pytest


# =============================================================================
# Test Fixtures
# =============================================================================

@pytest.fixture
def single_block_frame():
    """64x64 frame with one 20x20 block of class 1 voting at (31.5, 31.5)."""
    from houghpose.data.synthetic import SyntheticObject, make_synthetic_frame

    return make_synthetic_frame(
        [SyntheticObject(class_id=1, box=(22, 22, 42, 42))],
        num_classes=3,
    )


# =============================================================================
# Test Geometry
# =============================================================================

class TestComputeIoU:
    """Tests for IoU computation."""

    def test_iou_identical_boxes(self):
        """Identical boxes should have IoU = 1."""
        from houghpose.voting.geometry import compute_iou

        box = np.array([10, 10, 50, 50])
        assert compute_iou(box, box) == pytest.approx(1.0)

    def test_iou_no_overlap(self):
        """Non-overlapping boxes should have IoU = 0."""
        from houghpose.voting.geometry import compute_iou

        assert compute_iou(np.array([0, 0, 10, 10]), np.array([20, 20, 30, 30])) == 0.0

    def test_iou_partial_overlap(self):
        """Partially overlapping boxes."""
        from houghpose.voting.geometry import compute_iou

        # Intersection 5x5 = 25, union 100 + 100 - 25 = 175
        iou = compute_iou(np.array([0, 0, 10, 10]), np.array([5, 5, 15, 15]))
        assert iou == pytest.approx(25 / 175)

    def test_iou_degenerate_boxes(self):
        """Zero-area boxes give IoU = 0 instead of dividing by zero."""
        from houghpose.voting.geometry import compute_iou

        box = np.array([5, 5, 5, 5])
        assert compute_iou(box, box) == 0.0


class TestPointToLine:
    """Tests for point-to-line distance."""

    def test_distance_to_horizontal_line(self):
        """Line through (0, 0) along x is 3 away from (4, 3)."""
        from houghpose.voting.geometry import point_to_line

        d = point_to_line(np.array([4.0, 3.0]), np.array([[1.0, 0.0]]), np.array([[0.0, 0.0]]))
        assert d == pytest.approx([3.0])

    def test_distance_independent_of_vote_length(self):
        """Only the vote direction matters."""
        from houghpose.voting.geometry import point_to_line

        center = np.array([2.0, 7.0])
        points = np.array([[1.0, 1.0], [1.0, 1.0]])
        votes = np.array([[1.0, 1.0], [5.0, 5.0]])

        d = point_to_line(center, votes, points)
        assert d[0] == pytest.approx(d[1])

    def test_point_on_line(self):
        """Centers on the vote line have distance 0."""
        from houghpose.voting.geometry import point_to_line

        d = point_to_line(np.array([3.0, 3.0]), np.array([[1.0, 1.0]]), np.array([[0.0, 0.0]]))
        assert d == pytest.approx([0.0])

    def test_zero_vote_is_infinitely_far(self):
        """A zero vote never counts as an inlier."""
        from houghpose.voting.geometry import point_to_line

        d = point_to_line(np.array([3.0, 3.0]), np.array([[0.0, 0.0]]), np.array([[0.0, 0.0]]))
        assert np.isinf(d[0])


class TestFitCenter:
    """Tests for the least-squares intersection of vote lines."""

    def test_two_line_intersection(self):
        """Two votes pointing at (5, 5) intersect there."""
        from houghpose.voting.geometry import fit_center

        pixels = np.array([[0.0, 5.0], [5.0, 0.0]])
        votes = np.array([[1.0, 0.0], [0.0, 1.0]])

        assert np.allclose(fit_center(votes, pixels), [5.0, 5.0])

    def test_many_lines(self):
        """Votes from a ring of pixels recover the ring center."""
        from houghpose.voting.geometry import fit_center

        center = np.array([12.0, -3.0])
        angles = np.linspace(0, 2 * np.pi, 16, endpoint=False)
        pixels = center + 10 * np.stack([np.cos(angles), np.sin(angles)], axis=1)
        votes = center - pixels

        assert np.allclose(fit_center(votes, pixels), center)

    def test_parallel_lines(self):
        """Parallel votes have no intersection."""
        from houghpose.voting.geometry import fit_center

        pixels = np.array([[0.0, 0.0], [0.0, 1.0]])
        votes = np.array([[1.0, 0.0], [2.0, 0.0]])

        assert fit_center(votes, pixels) is None

    def test_zero_votes_are_ignored(self):
        """A zero vote does not count as a correspondence."""
        from houghpose.voting.geometry import fit_center

        pixels = np.array([[0.0, 5.0], [5.0, 0.0]])
        votes = np.array([[1.0, 0.0], [0.0, 0.0]])

        assert fit_center(votes, pixels) is None


# =============================================================================
# Test Label Partition
# =============================================================================

class TestPartitionLabels:
    """Tests for grouping pixels by class."""

    def test_buckets_hold_flat_indices(self):
        """Pixel indices are row-major and grouped by label."""
        from houghpose.voting.labels import partition_labels

        label = np.array([
            [0, 1, 1],
            [2, 0, 1],
        ])
        partition = partition_labels(label, num_classes=3, min_area=0)

        assert partition.pixel_indices[0].tolist() == [0, 4]
        assert partition.pixel_indices[1].tolist() == [1, 2, 5]
        assert partition.pixel_indices[2].tolist() == [3]

    def test_background_never_active(self):
        """Class 0 is partitioned but not active."""
        from houghpose.voting.labels import partition_labels

        partition = partition_labels(np.zeros((8, 8), dtype=np.int32), 2, min_area=0)

        assert partition.count(0) == 64
        assert partition.active_classes == []

    def test_min_area_boundary(self):
        """A class covering exactly min_area pixels is active."""
        from houghpose.voting.labels import partition_labels

        label = np.zeros((64, 64), dtype=np.int32)
        label[22:42, 22:42] = 1   # 400 pixels
        label[0:10, 0:10] = 2     # 100 pixels

        partition = partition_labels(label, num_classes=3, min_area=400)

        assert partition.active_classes == [1]
        assert partition.count(2) == 100

    def test_empty_class_excluded(self):
        """Classes without pixels are never active, even with min_area 0."""
        from houghpose.voting.labels import partition_labels

        label = np.ones((4, 4), dtype=np.int32)
        partition = partition_labels(label, num_classes=4, min_area=0)

        assert partition.active_classes == [1]
        assert partition.count(3) == 0

    def test_pixel_coords(self):
        """Flat indices convert to (x, y)."""
        from houghpose.voting.labels import partition_labels

        label = np.zeros((3, 4), dtype=np.int32)
        label[2, 1] = 1
        label[0, 3] = 1
        partition = partition_labels(label, num_classes=2, min_area=0)

        assert partition.pixel_coords(1).tolist() == [[3.0, 0.0], [1.0, 2.0]]
        assert partition.pixel_coords(1, np.array([1])).tolist() == [[1.0, 2.0]]


# =============================================================================
# Test Vote Field
# =============================================================================

class TestVoteField:
    """Tests for per-class vote lookup."""

    def test_channel_layout(self):
        """Channels 2c and 2c + 1 hold the (x, y) vote of class c."""
        from houghpose.voting.vote_field import VoteField

        vertex = np.zeros((2, 3, 4), dtype=np.float32)
        vertex[1, 2, 2:4] = [0.6, -0.8]

        field = VoteField(vertex)

        assert field.num_classes == 2
        assert np.allclose(field.votes(1, np.array([5, 0])), [[0.6, -0.8], [0.0, 0.0]])

    def test_odd_channel_count(self):
        """Odd channel counts are rejected."""
        from houghpose.voting.vote_field import VoteField

        with pytest.raises(ValueError):
            VoteField(np.zeros((2, 2, 3)))

    def test_synthetic_votes_point_at_center(self, single_block_frame):
        """Synthetic votes are unit vectors towards the block center."""
        from houghpose.voting.vote_field import VoteField

        field = VoteField(single_block_frame.vertex[0])
        vote = field.votes(1, np.array([31 * 64 + 22]))[0]

        assert np.linalg.norm(vote) == pytest.approx(1.0, abs=1e-6)
        assert vote[0] > 0.99


# =============================================================================
# Test Hypotheses
# =============================================================================

class TestHypothesis:
    """Tests for Hypothesis box inference."""

    def test_compute_width_height(self):
        """Box encloses every inlier around the center."""
        from houghpose.voting.hypothesis import Correspondences, Hypothesis

        pixels = np.array([[8.0, 10.0], [13.0, 10.0], [10.0, 7.0]])
        hyp = Hypothesis(
            class_id=1,
            center=[10.0, 10.0],
            inlier_points=Correspondences(votes=np.ones((3, 2)), pixels=pixels),
        )
        hyp.compute_width_height()

        assert hyp.width == pytest.approx(6.0)
        assert hyp.height == pytest.approx(6.0)

    def test_inferred_box_clamped(self):
        """Inferred box is center ± size / 2, clamped to the image."""
        from houghpose.voting.hypothesis import Hypothesis

        hyp = Hypothesis(class_id=1, center=[5.0, 30.0], width=20.0, height=10.0)
        box = hyp.inferred_box(width=64, height=64)

        assert np.allclose(box, [0.0, 25.0, 15.0, 35.0])

    def test_no_inliers_gives_empty_box(self):
        """Without inliers the box has zero size."""
        from houghpose.voting.hypothesis import Hypothesis

        hyp = Hypothesis(class_id=1, center=[5.0, 5.0])
        hyp.compute_width_height()

        assert hyp.width == 0.0 and hyp.height == 0.0

    def test_inlier_rate(self):
        """Rate is inliers over examined pixels."""
        from houghpose.voting.hypothesis import Hypothesis

        assert Hypothesis(class_id=1, center=[0, 0], inliers=30, eff_pixels=120).inlier_rate == 0.25
        assert Hypothesis(class_id=1, center=[0, 0]).inlier_rate == 0.0


class TestHypothesisRegistry:
    """Tests for the hypothesis arena."""

    @staticmethod
    def _registry(class_ids):
        from houghpose.voting.hypothesis import Hypothesis, HypothesisRegistry

        registry = HypothesisRegistry()
        for c in class_ids:
            registry.add(Hypothesis(class_id=c, center=[0.0, 0.0]))
        return registry

    def test_add_returns_stable_indices(self):
        """Arena indices follow insertion order."""
        registry = self._registry([2, 1, 2])

        assert len(registry) == 3
        assert registry.class_ids == [1, 2]
        assert registry.live_indices(2) == [0, 2]
        assert registry[1].class_id == 1

    def test_retain_drops_indices(self):
        """Retained indices stay live; the rest become inactive."""
        registry = self._registry([1, 1, 1, 1])
        registry.retain(1, [3, 0])

        assert registry.live_indices(1) == [3, 0]
        assert len(registry) == 2
        survivors = registry.survivors()
        assert survivors[0] is registry[3] and survivors[1] is registry[0]

    def test_retain_unknown_index(self):
        """Only live indices can be retained."""
        registry = self._registry([1, 2])

        with pytest.raises(ValueError):
            registry.retain(1, [1])

    def test_working_queue(self):
        """Crowded classes stay queued; lone ones until refined enough."""
        registry = self._registry([1, 1, 2, 3])
        registry[3].ref_steps = 8

        assert registry.working_queue(min_ref_steps=8) == [0, 1, 2]

    def test_survivors_ordered_by_class(self):
        """Survivors are listed class by class."""
        registry = self._registry([3, 1, 2])

        assert [h.class_id for h in registry.survivors()] == [1, 2, 3]
