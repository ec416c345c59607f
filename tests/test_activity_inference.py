"""
Tests for the activity inference pipeline, CLI and I/O helpers.
"""

import numpy as np
import pandas as pd
import pytest
import scanpy as sc
import scipy.sparse as sp
import yaml

from regulon_activity.activity_inference import main, prepare_matrix, run_activity_pipeline
from regulon_activity.datasets import get_toy_data
from regulon_activity.utils.checks import InvalidInputError
from regulon_activity.utils.io import load_config, load_h5ad, load_mat, load_net, resolve_missing


@pytest.fixture
def toy_files(tmp_path):
    mat, net = get_toy_data(n_samples=6, seed=0)
    mat.iloc[2, 1] = np.nan
    mat_path = tmp_path / "expression.csv"
    net_path = tmp_path / "net.csv"
    mat.to_csv(mat_path)
    net.to_csv(net_path, index=False)
    return mat_path, net_path


class TestIO:
    """Tests for the loaders."""

    def test_load_mat_tsv(self, tmp_path):
        path = tmp_path / "mat.tsv"
        pd.DataFrame({"s1": [1.0, 2.0]}, index=["g1", "g2"]).to_csv(path, sep="\t")
        mat = load_mat(path)
        assert mat.index.tolist() == ["g1", "g2"]
        assert mat.columns.tolist() == ["s1"]

    def test_load_net_missing_columns(self, tmp_path):
        path = tmp_path / "net.csv"
        pd.DataFrame({"tf": ["A"], "target": ["g1"]}).to_csv(path, index=False)
        with pytest.raises(InvalidInputError, match="missing columns"):
            load_net(path)

    def test_load_net_unweighted(self, tmp_path):
        path = tmp_path / "net.csv"
        pd.DataFrame({"tf": ["A"], "gene": ["g1"]}).to_csv(path, index=False)
        net = load_net(path, source="tf", target="gene", weight=None)
        assert net.columns.tolist() == ["tf", "gene"]

    def test_load_config_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.yaml")

    def test_load_config_not_a_mapping(self, tmp_path):
        path = tmp_path / "cfg.yaml"
        path.write_text("- min_n\n- times\n")
        with pytest.raises(InvalidInputError, match="mapping"):
            load_config(path)

    def test_load_config_empty(self, tmp_path):
        path = tmp_path / "cfg.yaml"
        path.write_text("")
        assert load_config(path) == {}

    def test_load_h5ad_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError, match="h5ad"):
            load_h5ad(tmp_path / "cells.h5ad")

    def test_resolve_missing(self):
        mat = pd.DataFrame({"s1": [1.0, np.nan]}, index=["g1", "g2"])
        assert resolve_missing(mat)["s1"].tolist() == [1.0, 0.0]

    def test_resolve_missing_sparse(self):
        values = sp.csr_matrix(np.array([[1.0, np.nan], [0.0, 2.0]]))
        filled, features, samples = resolve_missing((values, ["g1", "g2"], ["c1", "c2"]))
        assert sp.issparse(filled)
        np.testing.assert_array_equal(filled.toarray(), [[1.0, 0.0], [0.0, 2.0]])
        assert np.isnan(values.data).any()
        assert features == ["g1", "g2"]


class TestPipeline:
    """Tests for run_activity_pipeline."""

    def test_prepare_matrix_fills_missing(self, toy_files):
        mat_path, _ = toy_files
        assert not prepare_matrix(mat_path).isna().any().any()
        assert prepare_matrix(mat_path, fill_missing=False).isna().any().any()

    @pytest.mark.parametrize("sparse", [False, True])
    def test_prepare_matrix_h5ad_fills_missing(self, tmp_path, sparse):
        mat, _ = get_toy_data(n_samples=6, seed=0)
        X = mat.T.values.copy()
        X[1, 2] = np.nan
        adata = sc.AnnData(
            X=sp.csr_matrix(X) if sparse else X,
            obs=pd.DataFrame(index=mat.columns),
            var=pd.DataFrame(index=mat.index),
        )
        path = tmp_path / "cells.h5ad"
        adata.write_h5ad(path)

        values, features, samples = prepare_matrix(path)
        dense = values.toarray() if sparse else values
        assert sp.issparse(values) == sparse
        assert not np.isnan(dense).any()
        assert dense[2, 1] == 0.0
        assert features == mat.index.tolist()
        assert samples == mat.columns.tolist()

        kept, _, _ = prepare_matrix(path, fill_missing=False)
        assert np.isnan(kept.toarray() if sparse else kept).any()

    def test_outputs(self, toy_files, tmp_path):
        mat_path, net_path = toy_files
        out_dir = tmp_path / "out"
        result = run_activity_pipeline(
            mat_path, net_path, out_dir, min_n=4, times=20, seed=0, top_n=2,
        )

        for name in ["wmean_results.csv", "wmean_scores.csv", "norm_wmean_scores.csv",
                     "corr_wmean_scores.csv", "top_sources.csv"]:
            assert (out_dir / name).exists()

        results = result["results"]
        assert {"FDR", "neg_log10_FDR"} <= set(results.columns)
        assert results.loc[results["statistic"] == "wmean", "FDR"].isna().all()
        assert results.loc[results["statistic"] != "wmean", "FDR"].notna().all()
        assert set(result["wide"]) == {"wmean", "norm_wmean", "corr_wmean"}
        assert all(len(v) == 2 for v in result["top"].values())

        saved = pd.read_csv(out_dir / "wmean_results.csv")
        assert len(saved) == len(results)

    def test_keep_missing_fails(self, toy_files, tmp_path):
        mat_path, net_path = toy_files
        with pytest.raises(InvalidInputError, match="missing values"):
            run_activity_pipeline(mat_path, net_path, tmp_path / "out", times=0, fill_missing=False)

    def test_empty_results(self, toy_files, tmp_path):
        mat_path, net_path = toy_files
        with pytest.warns(UserWarning):
            result = run_activity_pipeline(mat_path, net_path, tmp_path / "out", min_n=50, times=0)
        assert result["results"].empty
        assert not (tmp_path / "out" / "wmean_results.csv").exists()


class TestCLI:
    """Tests for the command-line entry point."""

    def test_config_overrides(self, toy_files, tmp_path):
        mat_path, net_path = toy_files
        cfg_path = tmp_path / "config.yaml"
        cfg_path.write_text(yaml.safe_dump({
            "paths": {"mat_file": str(mat_path), "net_file": str(net_path)},
            "activity_inference": {"min_n": 4, "times": 0, "top_n": 1},
        }))
        out_dir = tmp_path / "cli_out"

        main(["--config", str(cfg_path), "--output-dir", str(out_dir)])

        saved = pd.read_csv(out_dir / "wmean_results.csv")
        assert saved["statistic"].unique().tolist() == ["wmean"]
        top = pd.read_csv(out_dir / "top_sources.csv")
        assert top["rank"].max() == 1

    def test_requires_inputs(self, tmp_path):
        with pytest.raises(SystemExit):
            main(["--output-dir", str(tmp_path)])
