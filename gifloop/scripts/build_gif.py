from __future__ import annotations

import argparse
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, List, Optional

from gifloop.config.loader import load_pipeline_config, pipeline_config_from_dict
from gifloop.config.schema import PipelineConfig
from gifloop.observability.logging import configure_logging
from gifloop.services.errors import GifBuildError
from gifloop.services.gif_pipeline import build_gif_ping_pong
from gifloop.services.result_store import save_unique_gif


SUPPORTED_IMAGE_EXTS = {".jpg", ".jpeg", ".png", ".tif", ".tiff", ".bmp", ".webp"}


def list_image_files(folder: Path) -> List[Path]:
    return sorted([p for p in folder.iterdir() if p.is_file() and p.suffix.lower() in SUPPORTED_IMAGE_EXTS])


def resolve_config(config_path: Optional[Path], overrides: Dict[str, Any]) -> PipelineConfig:
    # command-line flags win over config.json and the environment
    config = asdict(load_pipeline_config(config_path))
    config.update({k: v for k, v in overrides.items() if v is not None})
    return pipeline_config_from_dict(config)


def build_from_paths(inputs: List[Path], output_dir: Path, name: str, config: PipelineConfig) -> Path:
    images = [p.read_bytes() for p in inputs]
    gif = build_gif_ping_pong(images, config)
    return save_unique_gif(gif, name, output_dir)


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Build a looping ping-pong GIF from four captures (device order)")
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--inputs", nargs="+", help="Four image files in capture-device order")
    group.add_argument("--input-dir", help="Folder holding exactly four images; sorted by name")
    parser.add_argument("--output", required=True, help="Output folder for the GIF")
    parser.add_argument("--name", default="animation", help="Base file name without extension")
    parser.add_argument("--config", default="config.json", help="Path to config.json (missing file falls back to env/defaults)")
    parser.add_argument("--delay", type=int, dest="frame_delay_ms", help="Frame delay in ms")
    parser.add_argument("--max-shift", type=int, dest="max_shift_px", help="Stabilization search radius in px")
    parser.add_argument("--crop", type=float, dest="crop_percent", help="Inset crop fraction (0-0.30)")
    parser.add_argument("--no-stabilize", action="store_const", const=False, dest="stabilize")
    parser.add_argument("--no-border-detect", action="store_const", const=False, dest="auto_border_detect")
    parser.add_argument("--log-level", default="info")
    args = parser.parse_args(argv)

    configure_logging(args.log_level)
    overrides = {
        "frame_delay_ms": args.frame_delay_ms,
        "max_shift_px": args.max_shift_px,
        "crop_percent": args.crop_percent,
        "stabilize": args.stabilize,
        "auto_border_detect": args.auto_border_detect,
    }
    inputs = [Path(p) for p in args.inputs] if args.inputs else list_image_files(Path(args.input_dir))
    try:
        config = resolve_config(Path(args.config), overrides)
        out_path = build_from_paths(inputs, Path(args.output), args.name, config)
    except ValueError as e:
        raise SystemExit(f"Invalid option: {e}")
    except GifBuildError as e:
        raise SystemExit(f"GIF build failed: {e}")
    print(f"Saved: {out_path}")


if __name__ == "__main__":
    main()
