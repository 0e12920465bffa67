"""
End-to-end tests for IndependentComponentAnalysis.
"""

import gc
import numpy as np
import pytest

import fixedpoint_ica
from fixedpoint_ica import (IndependentComponentAnalysis, IndependentComponentAlgorithm,
                            AnalysisMethod, IndependentComponentCollection, Kurtosis,
                            Exponential, SeparationMetrics, make_mixture)


MIXING = np.array([[1.0, 1.0], [0.5, 2.0]])
ALGORITHMS = [IndependentComponentAlgorithm.DEFLATION, IndependentComponentAlgorithm.PARALLEL]


@pytest.fixture(scope="module")
def mixture():
    return make_mixture(2000, mixing=MIXING, kinds=("sine", "square"), random_state=0)


def computed(observed, **kwargs):
    kwargs.setdefault("random_state", 0)
    return IndependentComponentAnalysis(observed, **kwargs).compute(2)


class TestSourceRecovery:

    @pytest.mark.parametrize("algorithm", ALGORITHMS)
    def test_recovers_sources(self, mixture, algorithm):
        observed, sources, _ = mixture
        ica = computed(observed, algorithm=algorithm)

        separated = ica.separate(observed)
        assert SeparationMetrics.match_sources(separated, sources).min() > 0.99

    @pytest.mark.parametrize("algorithm", ALGORITHMS)
    def test_amari_distance_small(self, mixture, algorithm):
        observed, _, mixing = mixture
        ica = computed(observed, algorithm=algorithm)
        assert SeparationMetrics.amari_distance(ica.demixing_matrix, mixing) < 0.1

    @pytest.mark.parametrize("contrast", [Exponential(), Kurtosis()], ids=repr)
    def test_alternate_contrasts(self, mixture, contrast):
        observed, sources, _ = mixture
        ica = computed(observed, contrast=contrast)
        assert SeparationMetrics.match_sources(ica.result, sources).min() > 0.99

    def test_standardize(self, mixture):
        observed, sources, _ = mixture
        ica = computed(observed, method=AnalysisMethod.STANDARDIZE)
        assert SeparationMetrics.match_sources(ica.result, sources).min() > 0.99


class TestResultAssembly:

    @pytest.mark.parametrize("algorithm", ALGORITHMS)
    def test_demixing_times_mixing_is_scaled_identity(self, mixture, algorithm):
        observed, _, _ = mixture
        ica = computed(observed, algorithm=algorithm)

        for product in (ica.demixing_matrix @ ica.mixing_matrix,
                        ica.mixing_matrix @ ica.demixing_matrix):
            np.testing.assert_allclose(product / product[0, 0], np.eye(2), atol=1e-6)

    def test_matrices_normalized_by_sum(self, mixture):
        observed, _, _ = mixture
        ica = computed(observed)

        assert np.sum(ica.demixing_matrix) == pytest.approx(1.0)
        assert np.sum(ica.mixing_matrix) == pytest.approx(1.0)

    def test_demixing_composes_whitening(self, mixture):
        observed, _, _ = mixture
        ica = computed(observed)

        # Columns of whitening^-1 @ demixing are orthogonal directions in whitened space
        directions = np.linalg.solve(ica.whitening_matrix, ica.demixing_matrix).T
        directions /= np.linalg.norm(directions, axis=1, keepdims=True)
        assert SeparationMetrics.orthonormality_error(directions) < 1e-8

    def test_result_is_adjusted_source_times_demixing(self, mixture):
        observed, _, _ = mixture
        ica = computed(observed)
        np.testing.assert_allclose(ica.result, (observed - ica.means) @ ica.demixing_matrix)

    def test_results_read_only(self, mixture):
        observed, _, _ = mixture
        ica = computed(observed)
        with pytest.raises(ValueError):
            ica.demixing_matrix[0, 0] = 1.0
        with pytest.raises(ValueError):
            ica.result[0, 0] = 1.0

    def test_iteration_counts(self, mixture):
        observed, _, _ = mixture
        deflation = computed(observed, algorithm=IndependentComponentAlgorithm.DEFLATION)
        parallel = computed(observed, algorithm=IndependentComponentAlgorithm.PARALLEL)

        assert len(deflation.n_iter_) == 2
        assert all(0 < n <= 100 for n in deflation.n_iter_)
        assert 0 < parallel.n_iter_ <= 100

    def test_overwrite_adjusts_source_in_place(self, mixture):
        observed = mixture[0].copy()
        ica = computed(observed, overwrite=True)

        assert ica.source is observed
        np.testing.assert_allclose(observed.mean(axis=0), 0.0, atol=1e-10)

    def test_source_untouched_without_overwrite(self, mixture):
        observed = mixture[0].copy()
        computed(observed)
        np.testing.assert_array_equal(observed, mixture[0])

    def test_later_edits_to_data_are_not_seen(self, mixture):
        observed = mixture[0].copy()
        ica = IndependentComponentAnalysis(observed, random_state=0)
        observed += 100.0
        ica.compute(2)

        assert ica.source is not observed
        np.testing.assert_array_equal(ica.source, mixture[0])
        np.testing.assert_array_equal(ica.result, computed(mixture[0]).result)


class TestSeparateCombine:

    def test_separate_reproduces_result(self, mixture):
        observed, _, _ = mixture
        ica = computed(observed)
        np.testing.assert_array_equal(ica.separate(observed), ica.result)

    def test_separate_uses_training_statistics(self, mixture):
        observed, _, _ = mixture
        ica = computed(observed)
        shifted = observed[:100] + 5.0

        expected = (shifted - ica.means) @ ica.demixing_matrix
        np.testing.assert_allclose(ica.separate(shifted), expected)

    def test_combine_inverts_separate(self, mixture):
        observed, _, _ = mixture
        ica = computed(observed)

        scale = (ica.mixing_matrix @ ica.demixing_matrix)[0, 0]
        expected = (observed - ica.means) * scale
        np.testing.assert_allclose(ica.combine(ica.result), expected,
                                   rtol=1e-6, atol=1e-8 * np.abs(expected).max())

    def test_row_vector_layout(self, mixture):
        observed, _, _ = mixture
        ica = computed(observed)

        rows = ica.separate([list(row) for row in observed[:10]])
        assert isinstance(rows, list)
        assert len(rows) == 10
        np.testing.assert_allclose(np.array(rows), ica.result[:10])

        mixed = ica.combine(rows)
        assert isinstance(mixed, list)
        assert mixed[0].shape == (2,)

    def test_float32_uses_cached_narrow_copy(self, mixture):
        observed, _, _ = mixture
        ica = computed(observed)

        first = ica.separate(observed.astype(np.float32))
        cached = ica._narrowed["demixing"]
        second = ica.separate(observed.astype(np.float32))

        assert first.dtype == np.float32
        assert cached.dtype == np.float32
        assert cached.shape == ica.demixing_matrix.T.shape
        assert ica._narrowed["demixing"] is cached
        np.testing.assert_array_equal(first, second)
        np.testing.assert_allclose(first, ica.result, rtol=1e-3,
                                   atol=1e-3 * np.abs(ica.result).max())

        combined = ica.combine(first)
        assert combined.dtype == np.float32
        assert "mixing" in ica._narrowed

    def test_recompute_invalidates_cache(self, mixture):
        observed, _, _ = mixture
        ica = computed(observed)
        ica.separate(observed.astype(np.float32))
        assert ica._narrowed

        ica.compute(2)
        assert ica._narrowed == {}

    def test_combine_wrong_width(self, mixture):
        observed, _, _ = mixture
        ica = computed(observed)
        with pytest.raises(ValueError):
            ica.combine(np.zeros((5, 3)))


class TestDeterminism:

    @pytest.mark.parametrize("algorithm", ALGORITHMS)
    def test_fixed_seed(self, mixture, algorithm):
        observed, _, _ = mixture
        first = computed(observed, algorithm=algorithm, random_state=11)
        second = computed(observed, algorithm=algorithm, random_state=11)
        np.testing.assert_allclose(first.demixing_matrix, second.demixing_matrix, rtol=1e-12)

    def test_repeated_compute(self, mixture):
        observed, _, _ = mixture
        ica = computed(observed, random_state=5)
        before = ica.demixing_matrix.copy()
        ica.compute(2)
        np.testing.assert_allclose(ica.demixing_matrix, before, rtol=1e-12)


class TestComponents:

    def test_component_views(self, mixture):
        observed, _, _ = mixture
        ica = computed(observed)
        components = ica.components

        assert isinstance(components, IndependentComponentCollection)
        assert len(components) == 2
        for i, component in enumerate(components):
            assert component.index == i
            assert component.analysis is ica
            np.testing.assert_array_equal(component.demixing_vector, ica.demixing_matrix[:, i])
            np.testing.assert_array_equal(component.mixing_vector, ica.mixing_matrix[:, i])
            np.testing.assert_array_equal(component.whitening_vector, ica.whitening_matrix[:, i])

    def test_collection_read_only(self, mixture):
        observed, _, _ = mixture
        components = computed(observed).components
        with pytest.raises(TypeError):
            components[0] = None

    def test_replaced_on_recompute(self, mixture):
        observed, _, _ = mixture
        ica = computed(observed)
        old = ica.components
        ica.compute(1)

        assert ica.components is not old
        assert len(ica.components) == 1

    def test_weak_back_reference(self, mixture):
        observed, _, _ = mixture
        components = computed(observed).components
        gc.collect()

        with pytest.raises(ReferenceError):
            components[0].analysis


class TestFactory:

    def test_create_analysis(self, mixture):
        observed, _, _ = mixture
        ica = fixedpoint_ica.create_analysis(observed, algorithm="deflation",
                                             method="standardize", contrast="cube",
                                             iterations=50)

        assert ica.algorithm == IndependentComponentAlgorithm.DEFLATION
        assert ica.method == AnalysisMethod.STANDARDIZE
        assert isinstance(ica.contrast, Kurtosis)
        assert ica.iterations == 50

    @pytest.mark.parametrize("option", ["algorithm", "method", "contrast"])
    def test_unknown_option(self, mixture, option):
        with pytest.raises(ValueError):
            fixedpoint_ica.create_analysis(mixture[0], **{option: "jade"})

    def test_analysis_info(self, mixture):
        observed, _, _ = mixture
        info = computed(observed).get_analysis_info()

        assert info["computed"] is True
        assert info["n_components"] == 2
        assert info["algorithm"] == "parallel"
        assert info["n_variables"] == 2

    def test_version(self):
        assert fixedpoint_ica.get_version() == fixedpoint_ica.__version__
        assert fixedpoint_ica.get_available_contrasts() == ["logcosh", "exp", "cube"]
