import argparse
import json
import logging
from pathlib import Path
import sys

from rich.logging import RichHandler

from .engine import HolographicEngine
from .exceptions import HologramError
from .hologram import (
    Opportunity,
    encode_opportunities,
    encode_price_series,
    generate_synthetic_hologram,
)
from .image import save_pixel_buffer
from .types import (
    Algorithm,
    Channel,
    Colormap,
    FilterType,
    HologramField,
    Normalization,
    ReconstructionConfig,
    VisualizationConfig,
    WAVELENGTH_PRESETS,
)
from .utilities import Timer, plot_field, show_fresnel_requirements


logger = logging.getLogger("holoengine")


def add_reconstruction_arguments(parser: argparse.ArgumentParser) -> None:
    defaults = ReconstructionConfig()

    parser.add_argument(
        '--algorithm', '-a',
        type=Algorithm,
        choices=list(Algorithm),
        default=defaults.algorithm,
        help='Reconstruction algorithm'
    )
    parser.add_argument(
        '--distance', '-z',
        type=float,
        default=defaults.propagation_distance,
        help='Propagation distance in meters'
    )
    parser.add_argument(
        '--filter',
        type=FilterType,
        choices=list(FilterType),
        default=defaults.filter,
        help='Spectral low-pass filter applied after propagation (skipped for convolution)'
    )
    parser.add_argument(
        '--filter-cutoff',
        type=float,
        default=defaults.filter_cutoff,
        help='Filter cutoff as a fraction of the Nyquist radius'
    )
    parser.add_argument(
        '--no-phase-unwrapping',
        action='store_true',
        help='Leave the reconstructed phase wrapped'
    )
    parser.add_argument(
        '--no-noise-reduction',
        action='store_true',
        help='Skip Gaussian smoothing of the reconstructed amplitude'
    )
    parser.add_argument(
        '--fresnel-max-samples',
        type=int,
        default=defaults.fresnel_max_samples,
        help='Largest field (width * height) accepted by the Fresnel sum'
    )
    parser.add_argument(
        '--fresnel-fallback',
        action='store_true',
        help='Use the angular spectrum method for fields too large for the Fresnel sum'
    )
    parser.add_argument(
        '--workers', '-j',
        type=int,
        default=defaults.workers,
        help='Worker processes for the Fresnel sum and threads for transforms'
    )
    parser.add_argument(
        '--cuda',
        action='store_true',
        help='Run the Fresnel sum on a CUDA device if one is available'
    )


def add_output_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        '--output', '-o',
        type=Path,
        default="reconstruction.png",
        help='Output PNG path'
    )
    parser.add_argument(
        '--json',
        type=Path,
        default=None,
        help='Also write the reconstructed field as JSON to this path'
    )
    parser.add_argument(
        '--channel',
        type=Channel,
        choices=list(Channel),
        default=Channel.AMPLITUDE,
        help='Field component to render'
    )
    parser.add_argument(
        '--colormap',
        type=Colormap,
        choices=list(Colormap),
        default=Colormap.GRAY,
        help='Colormap for the rendered image'
    )
    parser.add_argument(
        '--normalization',
        type=Normalization,
        choices=list(Normalization),
        default=Normalization.LINEAR,
        help='Method for normalizing the rendered values'
    )
    parser.add_argument(
        '--contrast',
        action='store_true',
        help='Stretch contrast between the 1st and 99th percentiles'
    )
    parser.add_argument(
        '--show',
        action='store_true',
        help='Plot the reconstructed field with matplotlib'
    )
    parser.add_argument(
        '--debug',
        action='store_true',
        help='Enable debug output'
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """
    Parse command line arguments.

    Returns
    -------
    argparse.Namespace
        Parsed command line arguments
    """
    parser = argparse.ArgumentParser(
        prog='holoengine',
        description='Holographic field reconstruction',
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    subparsers = parser.add_subparsers(dest='command', required=True)

    # Synthetic point source / plane wave hologram
    synthetic = subparsers.add_parser(
        'synthetic',
        help='Reconstruct a synthetic interference hologram',
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    synthetic.add_argument('--width', type=int, default=256, help='Field width in samples')
    synthetic.add_argument('--height', type=int, default=256, help='Field height in samples')
    synthetic.add_argument(
        '--wavelength', '-w',
        type=float,
        default=WAVELENGTH_PRESETS["green"],
        help='Wavelength in meters (e.g., 532e-9 for a green laser)'
    )
    synthetic.add_argument(
        '--pixel-size', '-p',
        type=float,
        default=10e-6,
        help='Sample spacing in meters'
    )

    # Price/volume series
    series = subparsers.add_parser(
        'series',
        help='Reconstruct a hologram encoding a price/volume series',
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    series.add_argument(
        'input',
        type=Path,
        help='JSON file with "prices", "volumes" and optional "timeLabels"'
    )

    # Arbitrage opportunities
    opportunities = subparsers.add_parser(
        'opportunities',
        help='Reconstruct a hologram encoding arbitrage opportunities',
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    opportunities.add_argument(
        'input',
        type=Path,
        help='JSON file with an "opportunities" list'
    )

    for subparser in (synthetic, series, opportunities):
        add_reconstruction_arguments(subparser)
        add_output_arguments(subparser)

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> ReconstructionConfig:
    return ReconstructionConfig(
        algorithm=args.algorithm,
        propagation_distance=args.distance,
        filter=args.filter,
        filter_cutoff=args.filter_cutoff,
        phase_unwrapping=not args.no_phase_unwrapping,
        noise_reduction=not args.no_noise_reduction,
        fresnel_max_samples=args.fresnel_max_samples,
        fresnel_fallback=args.fresnel_fallback,
        workers=args.workers,
        use_cuda=args.cuda,
        show_progress=True,
    )


def load_hologram(args: argparse.Namespace) -> HologramField:
    if args.command == 'synthetic':
        return generate_synthetic_hologram(args.width, args.height, args.wavelength, args.pixel_size)

    # Validate input file
    if not args.input.exists():
        raise FileNotFoundError(f"Input file not found: {args.input}")
    payload = json.loads(args.input.read_text())

    if args.command == 'series':
        return encode_price_series(
            payload.get("prices", []),
            payload.get("volumes", []),
            payload.get("timeLabels"),
        )
    return encode_opportunities(
        Opportunity(
            profit=record["profit"],
            confidence=record["confidence"],
            risk_score=record["riskScore"],
            time_window=record.get("timeWindow", 0.0),
        )
        for record in payload.get("opportunities", [])
    )


def main(argv: list[str] | None = None) -> None:
    """Main function with command line interface."""
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=args.debug)],
    )

    try:
        config = build_config(args)
        engine = HolographicEngine(config)

        # Create hologram
        hologram = load_hologram(args)
        logger.info("Loaded %s hologram of %dx%d samples", args.command, hologram.width, hologram.height)
        if config.algorithm == Algorithm.FRESNEL:
            show_fresnel_requirements(hologram.width, hologram.height)

        # Reconstruct
        with Timer("Computation required", level=logging.INFO):
            reconstruction = engine.reconstruct(hologram)

        # Save output
        visualization = VisualizationConfig(
            channel=args.channel,
            colormap=args.colormap,
            normalization=args.normalization,
            contrast_enhancement=args.contrast,
        )
        pixels = engine.visualize(reconstruction, visualization)
        logger.info("Saving reconstruction to: %s", args.output)
        save_pixel_buffer(pixels, args.output)

        if args.json is not None:
            args.json.parent.mkdir(parents=True, exist_ok=True)
            args.json.write_text(json.dumps(reconstruction.to_dict()))
            logger.info("Saving field data to: %s", args.json)

        if args.show:
            plot_field(reconstruction, title=f"{config.algorithm.value} reconstruction")

        logger.info("Processing complete!")

    except (HologramError, FileNotFoundError, KeyError, json.JSONDecodeError) as e:
        logger.error("Error: %s", e)
        sys.exit(1)


if __name__ == "__main__":
    main()
