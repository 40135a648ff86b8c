import argparse
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

if os.environ.get("DEBUG", "0") == "1":
    logging.getLogger("transcript_matrix").setLevel(logging.DEBUG)

from transcript_matrix.config import Config, create_media_adapter, create_run_use_case, get_config
from transcript_matrix.domain.errors import MatrixError, PreconditionError
from transcript_matrix.inputs import resolve_inputs
from transcript_matrix.use_cases.run_matrix import RunRequest


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="transcript-matrix",
        description="Transcribe videos with several providers and analyze every transcript with several models.",
    )
    parser.add_argument("paths", nargs="*", help="Video files or directories (default: VIDEO_DIR)")
    images = parser.add_mutually_exclusive_group()
    images.add_argument("--images", dest="include_images", action="store_true", default=None,
                        help="Extract frames and send them to the analysis models")
    images.add_argument("--no-images", dest="include_images", action="store_false",
                        help="Analyze transcripts only")
    parser.add_argument("--only-transcribe", action="store_true", default=None,
                        help="Skip the analysis stage")
    parser.add_argument("--output-dir", help="Root directory for results (default: OUTPUT_DIR)")
    parser.add_argument("--serve", action="store_true", help="Run the HTTP API instead of a batch")
    return parser


def check_preconditions(cfg: Config, only_transcribe: bool) -> None:
    """Everything that must hold before any video is touched. Raises PreconditionError."""
    if not create_media_adapter().is_available():
        raise PreconditionError("ffmpeg is not installed or not on PATH", missing=["ffmpeg"])
    cfg.check_credentials(only_transcribe=only_transcribe)


def run_batch(cfg: Config, videos: List[Path], include_images: bool, only_transcribe: bool, output_root: Path) -> int:
    use_case = create_run_use_case(cfg, only_transcribe=only_transcribe)
    failed: List[str] = []
    for index, video in enumerate(videos, start=1):
        logger.info(f"===== Video {index}/{len(videos)}: {video.name} =====")
        try:
            use_case.execute(
                RunRequest(
                    video_path=video,
                    output_root=output_root,
                    include_images=include_images,
                    only_transcribe=only_transcribe,
                )
            )
        except MatrixError as e:
            logger.error(f"Processing of {video.name} failed: {e}")
            failed.append(video.name)

    logger.info(f"Batch finished: {len(videos) - len(failed)}/{len(videos)} videos processed")
    if failed:
        logger.error(f"Failed videos: {', '.join(failed)}")
        return 1
    return 0


def serve(cfg: Config) -> int:
    import uvicorn
    from transcript_matrix.api import create_app

    logger.info(f"Starting transcript-matrix API on {cfg.host}:{cfg.port}")
    uvicorn.run(create_app(config=cfg), host=cfg.host, port=cfg.port)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        cfg = get_config()
        if args.serve:
            return serve(cfg)

        include_images = cfg.include_images if args.include_images is None else args.include_images
        only_transcribe = cfg.only_transcribe if args.only_transcribe is None else args.only_transcribe
        logger.info(
            f"Mode: {'transcription only' if only_transcribe else 'transcription + analysis'}, "
            f"images {'on' if include_images else 'off'}"
        )

        check_preconditions(cfg, only_transcribe)
        videos = resolve_inputs(args.paths, cfg.video_dir, cfg.max_video_size_mb)
    except PreconditionError as e:
        logger.error(str(e))
        return 1

    logger.info(f"Found {len(videos)} video(s) to process")
    return run_batch(cfg, videos, include_images, only_transcribe, Path(args.output_dir or cfg.output_dir))


if __name__ == "__main__":
    sys.exit(main())
