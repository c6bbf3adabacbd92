from dataclasses import replace

import numpy as np
import numpy.testing as npt
import pytest

from holoengine.exceptions import InvalidParameterError
from holoengine.fresnel import compute_rows, fresnel_kernel_table, fresnel_propagate_cpu
from holoengine.reconstruction import (
    CONVOLUTION_KERNEL_SIZE,
    angular_spectrum_transfer,
    apply_spectral_filter,
    create_convolution_kernel,
    propagate_spectrum,
    reconstruct_field,
    spectral_filter_mask,
)
from holoengine.transform import shift_spectrum, fft2
from holoengine.types import FilterType, HologramField, ReconstructionConfig
from holoengine.utilities import normalized_cross_correlation
from holoengine.tests.conftest import ALGORITHM_NAMES
from holoengine.tests.utilities import explicit_fresnel, gaussian_field, random_field


DEBUG = False


@pytest.mark.parametrize("algorithm", ALGORITHM_NAMES)
@pytest.mark.parametrize("width, height", [(16, 16), (12, 8), (5, 9)])
def test_shape_invariance(algorithm, width, height, test_config):
    field = random_field(width, height)
    config = replace(test_config, algorithm=algorithm)
    propagated = reconstruct_field(field, config)
    assert propagated.shape == (height, width), (
        f"{algorithm} changed the field shape to {propagated.shape}"
    )


@pytest.mark.parametrize("algorithm", ALGORITHM_NAMES)
def test_energy_non_negative(algorithm, test_config):
    field = random_field(8, 8, seed=2)
    config = replace(test_config, algorithm=algorithm)
    result = HologramField.from_complex(
        reconstruct_field(field, config), field.wavelength, field.pixel_size,
    )
    assert np.all(np.isfinite(result.intensity))
    assert np.all(result.intensity >= 0)


def test_input_field_is_not_modified(small_field, test_config):
    amplitude = small_field.amplitude.copy()
    phase = small_field.phase.copy()
    for algorithm in ALGORITHM_NAMES:
        reconstruct_field(small_field, replace(test_config, algorithm=algorithm))
    npt.assert_array_equal(small_field.amplitude, amplitude)
    npt.assert_array_equal(small_field.phase, phase)


class TestFresnel:

    def test_matches_explicit_sum(self):
        field = random_field(4, 3, seed=5).complex_field()
        expected = explicit_fresnel(field, 532e-9, 10e-6, 1e-3)
        actual = fresnel_propagate_cpu(field, 532e-9, 10e-6, 1e-3)
        npt.assert_allclose(actual, expected, rtol=1e-9, atol=1e-6)

    def test_kernel_table_centre(self):
        distance = 0.05
        kernel = fresnel_kernel_table(3, 4, 532e-9, 10e-6, distance)
        assert kernel.shape == (5, 7)
        k = 2 * np.pi / 532e-9
        assert kernel[2, 3] == pytest.approx(np.exp(-1j * k * distance) / distance)

    def test_compute_rows_subset(self):
        field = random_field(6, 6, seed=6).complex_field()
        kernel = fresnel_kernel_table(6, 6, 532e-9, 10e-6, 1e-3)
        full = fresnel_propagate_cpu(field, 532e-9, 10e-6, 1e-3)
        rows, block = compute_rows(range(2, 4), field, kernel)
        assert rows == [2, 3]
        npt.assert_allclose(block, full[2:4])

    def test_process_pool_matches_serial(self):
        field = random_field(8, 8, seed=7).complex_field()
        serial = fresnel_propagate_cpu(field, 532e-9, 10e-6, 1e-3, num_processes=1)
        pooled = fresnel_propagate_cpu(field, 532e-9, 10e-6, 1e-3, num_processes=2)
        npt.assert_allclose(pooled, serial)

    def test_cuda_request_without_device_falls_back(self, small_field, test_config, monkeypatch):
        monkeypatch.setattr("holoengine.fresnel.is_cuda_available", lambda: False)
        config = replace(test_config, algorithm="fresnel")
        expected = reconstruct_field(small_field, config)
        actual = reconstruct_field(small_field, replace(config, use_cuda=True))
        npt.assert_allclose(actual, expected)


def test_fresnel_agrees_with_angular_spectrum():
    # Sub-micron sampling: 10 um of propagation visibly spreads the beam
    field = gaussian_field(16, 16, sigma=1.5, pixel_size=0.5e-6)
    config = ReconstructionConfig(
        propagation_distance=1e-5,
        filter="none",
        phase_unwrapping=False,
        noise_reduction=False,
    )
    fresnel = reconstruct_field(field, replace(config, algorithm="fresnel"))
    angular = reconstruct_field(field, replace(config, algorithm="angular_spectrum"))
    correlation = normalized_cross_correlation(np.abs(fresnel) ** 2, np.abs(angular) ** 2)
    unpropagated = normalized_cross_correlation(field.intensity, np.abs(angular) ** 2)

    if DEBUG:
        print(f"Fresnel / angular spectrum intensity correlation: {correlation:.4f}")
        print(f"Input / angular spectrum intensity correlation: {unpropagated:.4f}")

    assert correlation > 0.9, f"Intensity correlation too low: {correlation}"
    assert unpropagated < 0.9, f"Propagation barely changed the field: {unpropagated}"
    assert correlation > unpropagated + 0.1, (
        f"Fresnel agreement {correlation} is not clearly above the input's {unpropagated}"
    )


class TestAngularSpectrum:

    def test_evanescent_bins_are_zero(self):
        # Sampling finer than half a wavelength puts bins outside the propagating disc
        wavelength, pixel_size = 532e-9, 200e-9
        field = random_field(16, 16, seed=8, wavelength=wavelength, pixel_size=pixel_size)
        transfer, propagating = angular_spectrum_transfer(16, 16, wavelength, pixel_size, 1e-6)
        assert not propagating.all(), "Expected some evanescent bins"
        assert propagating.any()

        spectrum = propagate_spectrum(field.complex_field(), wavelength, pixel_size, 1e-6)
        npt.assert_array_equal(spectrum[~propagating], 0)
        npt.assert_array_equal(transfer[~propagating], 0)

    def test_transfer_is_unit_modulus_when_propagating(self):
        transfer, propagating = angular_spectrum_transfer(16, 16, 532e-9, 10e-6, 0.1)
        assert propagating.all()
        npt.assert_allclose(np.abs(transfer), 1.0)

    def test_zero_distance_is_identity(self):
        # With no evanescent bins and z -> 0 the transfer function is one
        field = random_field(8, 8, seed=9)
        config = ReconstructionConfig(
            algorithm="angular_spectrum",
            propagation_distance=1e-15,
            filter="none",
        )
        propagated = reconstruct_field(field, config)
        npt.assert_allclose(propagated, field.complex_field(), atol=1e-5)

    def test_uniform_field_keeps_its_magnitude(self, test_config):
        field = HologramField(
            width=8, height=8, wavelength=532e-9, pixel_size=10e-6,
            amplitude=np.ones(64), phase=np.zeros(64),
        )
        propagated = reconstruct_field(field, replace(test_config, algorithm="angular_spectrum"))
        # Only the DC bin is populated, and it has unit gain
        npt.assert_allclose(np.abs(propagated), 1.0, rtol=1e-9)


class TestConvolution:

    def test_kernel_magnitudes_sum_to_one(self):
        kernel = create_convolution_kernel(532e-9, 10e-6, 0.1)
        assert kernel.shape == (CONVOLUTION_KERNEL_SIZE, CONVOLUTION_KERNEL_SIZE)
        assert np.sum(np.abs(kernel)) == pytest.approx(1.0)

    def test_kernel_is_point_symmetric(self):
        kernel = create_convolution_kernel(532e-9, 10e-6, 0.1)
        npt.assert_allclose(kernel, kernel[::-1, ::-1])

    @pytest.mark.parametrize("size", [0, 4, -3])
    def test_kernel_size_must_be_odd(self, size):
        with pytest.raises(InvalidParameterError):
            create_convolution_kernel(532e-9, 10e-6, 0.1, size=size)

    def test_impulse_response_is_the_kernel(self, test_config):
        # An impulse in the middle of a 21x21 field reproduces the full kernel
        size = CONVOLUTION_KERNEL_SIZE
        amplitude = np.zeros((size, size))
        amplitude[size // 2, size // 2] = 1.0
        field = HologramField(
            width=size, height=size, wavelength=532e-9, pixel_size=10e-6,
            amplitude=amplitude, phase=np.zeros_like(amplitude),
        )
        propagated = reconstruct_field(field, replace(test_config, algorithm="convolution"))
        kernel = create_convolution_kernel(532e-9, 10e-6, test_config.propagation_distance)
        npt.assert_allclose(propagated, kernel, atol=1e-12)

    def test_zero_fill_at_edges(self, test_config):
        # A corner impulse only sees the in-range quarter of the kernel
        amplitude = np.zeros((8, 8))
        amplitude[0, 0] = 1.0
        field = HologramField(
            width=8, height=8, wavelength=532e-9, pixel_size=10e-6,
            amplitude=amplitude, phase=np.zeros_like(amplitude),
        )
        propagated = reconstruct_field(field, replace(test_config, algorithm="convolution"))
        kernel = create_convolution_kernel(532e-9, 10e-6, test_config.propagation_distance)
        center = CONVOLUTION_KERNEL_SIZE // 2
        npt.assert_allclose(propagated, kernel[center:center + 8, center:center + 8], atol=1e-12)


class TestSpectralFilter:

    @pytest.mark.parametrize("filter_type", [FilterType.GAUSSIAN, FilterType.BUTTERWORTH])
    def test_dc_gain_is_one(self, filter_type):
        mask = spectral_filter_mask(16, 16, filter_type, cutoff=0.3)
        assert mask[8, 8] == 1.0
        assert mask.max() <= 1.0

    @pytest.mark.parametrize("filter_type", [FilterType.GAUSSIAN, FilterType.BUTTERWORTH])
    def test_attenuates_high_frequencies(self, filter_type):
        mask = spectral_filter_mask(16, 16, filter_type, cutoff=0.3)
        assert mask[0, 0] < 0.05
        assert mask[8, 12] < mask[8, 10] < mask[8, 8]

    def test_none_is_identity(self):
        field = random_field(8, 8).complex_field()
        config = ReconstructionConfig(filter="none")
        assert apply_spectral_filter(field, config) is field
        npt.assert_array_equal(spectral_filter_mask(4, 4, FilterType.NONE), 1.0)

    @pytest.mark.parametrize("filter_type", ["gaussian", "butterworth"])
    def test_uniform_field_passes_unchanged(self, filter_type):
        field = np.full((8, 8), 2.0 + 1.0j)
        config = ReconstructionConfig(filter=filter_type)
        npt.assert_allclose(apply_spectral_filter(field, config), field, atol=1e-12)

    def test_checkerboard_is_suppressed(self):
        # A checkerboard lives entirely at the Nyquist corner
        checkerboard = np.indices((8, 8)).sum(axis=0) % 2 * 2.0 - 1.0
        config = ReconstructionConfig(filter="gaussian", filter_cutoff=0.25)
        filtered = apply_spectral_filter(checkerboard.astype(complex), config)
        assert np.max(np.abs(filtered)) < 1e-3

    def test_butterworth_half_power_at_cutoff(self):
        mask = spectral_filter_mask(16, 16, FilterType.BUTTERWORTH, cutoff=0.5, order=3)
        # Four bins from the centre of 16 is half the Nyquist radius
        assert mask[8, 12] == pytest.approx(0.5)
        spectrum = shift_spectrum(fft2(np.ones((16, 16))))
        assert np.abs(spectrum * mask)[8, 8] == pytest.approx(256.0)
