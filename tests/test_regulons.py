"""
Tests for regulon construction from network tables.
"""

import numpy as np
import pandas as pd
import pytest

from regulon_activity.regulons import (
    build_regulons,
    check_net,
    filter_by_min_n,
    regulon_correlation,
    rename_net,
)
from regulon_activity.utils.checks import InvalidInputError


class TestRenameNet:
    """Tests for rename_net."""

    def test_custom_columns(self):
        net = pd.DataFrame({"tf": ["A"], "gene": ["g1"], "mor": [-1]})
        out = rename_net(net, source="tf", target="gene", weight="mor")
        assert list(out.columns) == ["source", "target", "weight"]
        assert out["weight"].dtype == float
        assert out.iloc[0].tolist() == ["A", "g1", -1.0]

    def test_missing_column(self, small_net):
        with pytest.raises(InvalidInputError, match="missing columns"):
            rename_net(small_net, weight="mor")

    def test_unit_weights(self, small_net):
        out = rename_net(small_net.drop(columns="weight"), weight=None)
        assert (out["weight"] == 1.0).all()

    def test_non_numeric_weight(self):
        net = pd.DataFrame({"source": ["A"], "target": ["g1"], "weight": ["strong"]})
        with pytest.raises(InvalidInputError, match="non-numeric"):
            rename_net(net)


class TestCheckNet:
    """Tests for check_net."""

    def test_valid(self, small_net):
        check_net(small_net)

    def test_repeated_edge_with_different_weight(self, small_net):
        net = pd.concat(
            [small_net, pd.DataFrame({"source": ["A"], "target": ["g1"], "weight": [5.0]})],
            ignore_index=True,
        )
        with pytest.raises(InvalidInputError, match="repeated edges"):
            check_net(net)

    def test_zero_weight_regulon(self):
        net = pd.DataFrame({"source": ["Z"], "target": ["g1"], "weight": [0.0]})
        with pytest.raises(InvalidInputError, match="all-zero"):
            check_net(net)


class TestBuildRegulons:
    """Tests for build_regulons."""

    def test_filter_by_min_n(self, small_net):
        kept = filter_by_min_n(small_net, ["g1", "g2", "g3"], min_n=2)
        assert set(kept["source"]) == {"A", "B"}
        assert "g4" not in set(kept["target"])

    def test_structure(self, small_net):
        regulons = build_regulons(small_net, ["g1", "g2", "g3"], min_n=2)

        assert regulons.sources == ["A", "B"]
        assert regulons.weights.shape == (2, 3)
        np.testing.assert_array_equal(regulons.sizes, [2, 2])

    def test_rows_l1_normalised(self, small_net):
        regulons = build_regulons(small_net, ["g1", "g2", "g3"], min_n=1)
        l1 = np.abs(regulons.weights.toarray()).sum(axis=1)
        np.testing.assert_allclose(l1, 1.0)

    def test_targets(self, small_net):
        regulons = build_regulons(small_net, ["g1", "g2", "g3"], min_n=2)
        targets = regulons.targets("B")
        assert targets == pytest.approx({"g2": -1 / 1.5, "g3": 0.5 / 1.5})

    def test_no_survivors(self, small_net):
        regulons = build_regulons(small_net, ["g1", "g2", "g3"], min_n=5)
        assert regulons.n_sources == 0
        assert regulons.weights.shape == (0, 3)

    def test_zero_weights_among_measured_targets(self):
        """A regulon whose only non-zero weight is on an unmeasured target."""
        net = pd.DataFrame({
            "source": ["A", "A", "A"],
            "target": ["g1", "g2", "g9"],
            "weight": [0.0, 0.0, 1.0],
        })
        with pytest.raises(InvalidInputError, match="measured targets"):
            build_regulons(net, ["g1", "g2"], min_n=2)


class TestRegulonCorrelation:
    """Tests for regulon_correlation."""

    def test_identical_regulons(self):
        net = pd.DataFrame({
            "source": ["A", "A", "B", "B", "C", "C"],
            "target": ["g1", "g2", "g1", "g2", "g3", "g4"],
            "weight": [1.0, -1.0, 2.0, -2.0, 1.0, 1.0],
        })
        regulons = build_regulons(net, ["g1", "g2", "g3", "g4"], min_n=2)
        corr = regulon_correlation(regulons)

        assert list(corr.columns) == ["source_a", "source_b", "corr"]
        assert len(corr) == 3
        top = corr.iloc[0]
        assert (top["source_a"], top["source_b"]) == ("A", "B")
        assert top["corr"] == pytest.approx(1.0)

    def test_single_regulon(self, small_net):
        regulons = build_regulons(small_net, ["g1", "g2", "g3"], min_n=1)
        one = build_regulons(small_net[small_net["source"] == "A"], ["g1", "g2", "g3"], min_n=1)
        assert regulon_correlation(one).empty
        assert len(regulon_correlation(regulons)) == 3
