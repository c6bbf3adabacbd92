import json

import numpy as np
from PIL import Image
import pytest

from holoengine.__main__ import build_config, main, parse_args
from holoengine.types import Algorithm, Channel, FilterType


def test_parse_synthetic_defaults():
    args = parse_args(["synthetic"])
    assert args.command == "synthetic"
    assert (args.width, args.height) == (256, 256)
    assert args.wavelength == 532e-9
    assert args.algorithm == Algorithm.ANGULAR_SPECTRUM
    assert args.filter == FilterType.NONE
    assert args.channel == Channel.AMPLITUDE

    config = build_config(args)
    assert config.phase_unwrapping
    assert config.noise_reduction
    assert config.workers == 1


def test_parse_reconstruction_flags():
    args = parse_args([
        "synthetic", "-a", "fresnel", "-z", "0.05", "--filter", "butterworth",
        "--no-phase-unwrapping", "--no-noise-reduction", "--fresnel-fallback", "-j", "2",
    ])
    config = build_config(args)
    assert config.algorithm == Algorithm.FRESNEL
    assert config.propagation_distance == 0.05
    assert config.filter == FilterType.BUTTERWORTH
    assert not config.phase_unwrapping
    assert not config.noise_reduction
    assert config.fresnel_fallback
    assert config.workers == 2


def test_parse_rejects_unknown_algorithm():
    with pytest.raises(SystemExit):
        parse_args(["synthetic", "--algorithm", "holographic"])


def test_command_is_required():
    with pytest.raises(SystemExit):
        parse_args([])


def test_main_synthetic(tmp_path):
    output = tmp_path / "synthetic.png"
    field_json = tmp_path / "field.json"
    main([
        "synthetic", "--width", "32", "--height", "24",
        "--colormap", "hot", "-o", str(output), "--json", str(field_json),
    ])
    with Image.open(output) as img:
        assert img.size == (32, 24)
        assert img.mode == "RGBA"
    data = json.loads(field_json.read_text())
    assert (data["width"], data["height"]) == (32, 24)
    assert len(data["amplitudeData"]) == 32 * 24


def test_main_series(tmp_path):
    source = tmp_path / "series.json"
    source.write_text(json.dumps({"prices": [1.0, 2.0, 3.0, 2.5], "volumes": [4.0, 3.0, 2.0, 1.0]}))
    output = tmp_path / "series.png"
    main(["series", str(source), "-o", str(output), "--normalization", "log"])
    with Image.open(output) as img:
        assert img.size == (4, 256)


def test_main_opportunities(tmp_path):
    source = tmp_path / "opportunities.json"
    source.write_text(json.dumps({"opportunities": [
        {"profit": 300.0, "confidence": 0.75, "riskScore": 0.1},
    ]}))
    output = tmp_path / "opportunities.png"
    main(["opportunities", str(source), "-o", str(output), "--channel", "complex"])
    with Image.open(output) as img:
        pixels = np.asarray(img)
    assert pixels.shape == (256, 256, 4)


def test_main_missing_input_exits(tmp_path):
    with pytest.raises(SystemExit) as excinfo:
        main(["series", str(tmp_path / "missing.json"), "-o", str(tmp_path / "out.png")])
    assert excinfo.value.code == 1


def test_main_fresnel_capacity_exits(tmp_path):
    with pytest.raises(SystemExit) as excinfo:
        main([
            "synthetic", "--width", "16", "--height", "16", "-a", "fresnel",
            "--fresnel-max-samples", "100", "-o", str(tmp_path / "out.png"),
        ])
    assert excinfo.value.code == 1
