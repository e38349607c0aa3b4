# ╔══════════════════════════════════════════════════════════════════════╗
# ║  Latentkit — On-device Latent Diffusion                              ║
# ║  Copyright © 2026 Pictofeed, LLC. All rights reserved.               ║
# ╚══════════════════════════════════════════════════════════════════════╝
"""``latentkit`` command line — generate images from a text prompt.

Exit status: 0 on success (filtered images included), 1 on a pipeline
error, 2 on a usage error, 130 when interrupted.
"""
from __future__ import annotations

import argparse
import os
import re
import sys
import time
from typing import List, Optional

from . import __version__
from .diffusion.pipelines import (
    PipelineRequest,
    Progress,
    SamplingPipeline,
)
from .diffusion.resources import ResidencyPolicy
from .diffusion.rng import RANDOM_SOURCES
from .diffusion.schedulers import SCHEDULERS
from .errors import Cancelled, InvalidConfiguration, LatentkitError
from .utils import logging
from .utils.image import to_pil_images

logger = logging.get_logger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2
EXIT_INTERRUPTED = 130

COMPUTE_UNITS = ('cpu', 'cuda', 'coreml', 'dml')

EXAMPLES_TEXT = r"""
Examples
  latentkit "a photo of an astronaut riding a horse" \
    --resource-path ./models/sd-1.5 --seed 93 --step-count 25

  latentkit "a watercolor of the same scene" --resource-path ./models/sd-1.5 \
    --image ./astronaut.png --strength 0.6 --scheduler ddim
"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='latentkit',
        description='Generate images from a text prompt with latent diffusion.',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=EXAMPLES_TEXT,
    )
    parser.add_argument('prompt', help='Text prompt to condition on')
    parser.add_argument('--resource-path', required=True,
                        help='Directory holding the compiled models, '
                             'vocab.json and merges.txt')
    parser.add_argument('--negative-prompt', default='',
                        help='What the image should not contain')
    parser.add_argument('--step-count', type=int, default=50,
                        help='Number of denoising steps (default: 50)')
    parser.add_argument('--guidance-scale', type=float, default=7.5,
                        help='Classifier-free guidance weight (default: 7.5)')
    parser.add_argument('--seed', type=int, default=None,
                        help='Random seed (default: random)')
    parser.add_argument('--image-count', type=int, default=1,
                        help='Images to generate, one seed each (default: 1)')
    parser.add_argument('--output-path', default='./',
                        help='Directory for the PNG files (default: ./)')
    parser.add_argument('--image', default=None,
                        help='Starting image for image-to-image')
    parser.add_argument('--strength', type=float, default=0.5,
                        help='How much of the starting image to replace, '
                             'in (0, 1] (default: 0.5)')
    parser.add_argument('--reduce-memory', action='store_true',
                        help='Load each model only while it is needed')
    parser.add_argument('--scheduler', choices=sorted(SCHEDULERS), default='pndm',
                        help='Noise scheduler (default: pndm)')
    parser.add_argument('--rng', choices=sorted(RANDOM_SOURCES), default='numpy',
                        help='Random source (default: numpy)')
    parser.add_argument('--compute-units', choices=COMPUTE_UNITS, default='cpu',
                        help='Where to run the models (default: cpu)')
    parser.add_argument('--disable-safety', action='store_true',
                        help='Skip the safety checker')
    parser.add_argument('--save-every', type=int, default=0, metavar='N',
                        help='Also save an intermediate image every N steps')
    parser.add_argument('--eta', type=float, default=0.0,
                        help='DDIM stochasticity (default: 0)')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Log pipeline phases and timings')
    parser.add_argument('--version', action='version',
                        version=f'%(prog)s {__version__}')
    return parser


def image_name(prompt: str, seed: int, step: Optional[int] = None) -> str:
    """``<prompt>.<seed>.final.png`` or ``<prompt>.<seed>.<step>.png``."""
    stem = re.sub(r'[\s/\\]+', '_', prompt.strip())[:200] or 'image'
    suffix = 'final' if step is None else str(step)
    return f"{stem}.{seed}.{suffix}.png"


def load_pipeline(args: argparse.Namespace) -> SamplingPipeline:
    policy = (ResidencyPolicy.LOAD_ON_DEMAND if args.reduce_memory
              else ResidencyPolicy.ALWAYS_RESIDENT)
    return SamplingPipeline.from_resources(
        args.resource_path,
        policy=policy,
        compute_units=args.compute_units,
        show_progress=True,
    )


def _saver(args: argparse.Namespace, request: PipelineRequest):
    """Progress callback that writes every N-th intermediate image."""

    def on_progress(progress: Progress) -> bool:
        if (progress.step + 1) % args.save_every == 0:
            seed = request.seed + progress.image_index
            frame = to_pil_images(progress.images())[0]
            path = os.path.join(args.output_path,
                                image_name(request.prompt, seed, progress.step + 1))
            frame.save(path)
            logger.info("Saved %s", path)
        return True

    return on_progress


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as exc:
        return int(exc.code or 0)

    if args.verbose:
        logging.set_verbosity_info()
    if args.save_every < 0:
        parser.print_usage(sys.stderr)
        print("latentkit: error: --save-every must be non-negative", file=sys.stderr)
        return EXIT_USAGE

    seed = args.seed
    if seed is None:
        seed = int.from_bytes(os.urandom(4), 'little') % (2 ** 32 - args.image_count)

    request = PipelineRequest(
        prompt=args.prompt,
        negative_prompt=args.negative_prompt,
        seed=seed,
        step_count=args.step_count,
        guidance_scale=args.guidance_scale,
        eta=args.eta,
        starting_image=args.image,
        strength=args.strength,
        image_count=args.image_count,
        scheduler=args.scheduler,
        rng=args.rng,
        disable_safety=args.disable_safety,
    )

    try:
        request.validate()
        if args.image is not None and not os.path.isfile(args.image):
            raise InvalidConfiguration(f"starting image {args.image} not found")
        os.makedirs(args.output_path, exist_ok=True)

        started = time.perf_counter()
        pipeline = load_pipeline(args)
        logger.info("Pipeline ready in %.2fs", time.perf_counter() - started)

        progress = _saver(args, request) if args.save_every else None
        result = pipeline.generate(request, progress=progress)
    except InvalidConfiguration as exc:
        print(f"latentkit: error: {exc}", file=sys.stderr)
        return EXIT_USAGE
    except (Cancelled, KeyboardInterrupt):
        print("latentkit: cancelled", file=sys.stderr)
        return EXIT_INTERRUPTED
    except (LatentkitError, OSError) as exc:
        print(f"latentkit: {type(exc).__name__}: {exc}", file=sys.stderr)
        return EXIT_FAILURE

    for seed_k, image in zip(result.seeds, result.pil_images()):
        if image is None:
            print(f"Image with seed {seed_k} was filtered by the safety checker",
                  file=sys.stderr)
            continue
        path = os.path.join(args.output_path, image_name(args.prompt, seed_k))
        image.save(path)
        print(f"Saved {path}")
    return EXIT_OK


if __name__ == '__main__':
    sys.exit(main())
