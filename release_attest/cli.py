"""release-attest command line.

Subcommands:
- export      download attestation bundles and write attestations-index.json
- verify      verify release assets and images against the index
- resolve-rc  find the latest RC tag for final promotion

Inputs come from a YAML file (--config), the environment, and flags, in
increasing precedence. Step outputs go to ``$GITHUB_OUTPUT`` when set.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import pathlib
import sys
from typing import Any, Dict, List, Mapping, Optional

from release_attest import __version__
from release_attest.config import OPTIONS, AttestConfig, load_config
from release_attest.errors import AttestError
from release_attest.export import run_export
from release_attest.rc import resolve_latest_rc
from release_attest.verify import run_verify

logger = logging.getLogger(__name__)

# flag dest -> config field
_CONFIG_FLAGS = {
    "assets_root": "--assets-root",
    "asset_patterns": "--patterns",
    "bundle_dir": "--bundle-dir",
    "repository": "--repository",
    "target_repo": "--target-repo",
    "version": "--version",
    "oci_subjects": "--oci-subjects",
    "bundle_naming": "--bundle-naming",
    "log_level": "--log-level",
}


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def write_outputs(outputs: Mapping[str, Any], env: Optional[Mapping[str, str]] = None) -> None:
    """Append ``key=value`` lines to the file named by ``GITHUB_OUTPUT``, if any."""
    env = os.environ if env is None else env
    target = env.get("GITHUB_OUTPUT")
    if not target:
        return
    with open(target, "a", encoding="utf-8") as fh:
        for k, v in outputs.items():
            fh.write(f"{k}={v}\n")


def _emit(args: argparse.Namespace, outputs: Dict[str, Any]) -> None:
    write_outputs(outputs)
    if getattr(args, "json", False):
        print(json.dumps(outputs, indent=2, sort_keys=True))


def _config_from_args(args: argparse.Namespace) -> AttestConfig:
    overrides = {field: getattr(args, field, None) for field in _CONFIG_FLAGS}
    config = load_config(path=args.config or None, overrides=overrides)
    configure_logging(config.log_level)
    return config


def cmd_export(args: argparse.Namespace) -> int:
    config = _config_from_args(args)
    result = run_export(config)
    _emit(
        args,
        {
            "bundle_count": str(result.bundle_count),
            "index_path": str(result.index_path),
        },
    )
    return 0


def cmd_verify(args: argparse.Namespace) -> int:
    config = _config_from_args(args)
    result = run_verify(config)
    _emit(
        args,
        {
            "verified_count": str(result.verified_count),
            "verified_image_digest": result.verified_image_digest,
        },
    )
    return 0


def cmd_resolve_rc(args: argparse.Namespace) -> int:
    configure_logging(args.log_level or "info")
    branch = args.branch or os.environ.get("BRANCH", "")
    component = args.component_path or os.environ.get("COMPONENT_PATH", "")
    repo_dir = pathlib.Path(args.repo_dir) if args.repo_dir else None
    meta = resolve_latest_rc(branch, component, repo_dir=repo_dir)
    _emit(args, meta.to_dict())
    return 0


def _add_config_args(p: argparse.ArgumentParser, with_naming: bool) -> None:
    p.add_argument("--config", default="", help="YAML configuration file")
    for field, flag in _CONFIG_FLAGS.items():
        if field == "bundle_naming" and not with_naming:
            continue
        opt = OPTIONS[field]
        p.add_argument(flag, dest=field, default=None, help=f"{opt.description} (env: {opt.env_vars[0]})")
    p.add_argument("--json", action="store_true", help="Print outputs as JSON")


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="release-attest", description=__doc__.splitlines()[0])
    ap.add_argument("-V", "--tool-version", action="version", version=f"%(prog)s {__version__}")
    sub = ap.add_subparsers(dest="cmd", required=True)

    e = sub.add_parser("export", help="Download attestation bundles and write the index")
    _add_config_args(e, with_naming=True)
    e.set_defaults(func=cmd_export)

    v = sub.add_parser("verify", help="Verify subjects against the attestations index")
    _add_config_args(v, with_naming=False)
    v.set_defaults(func=cmd_verify)

    r = sub.add_parser("resolve-rc", help="Resolve the latest RC tag of a release branch")
    r.add_argument("--branch", default="", help="Release branch, releases/v0.X (env: BRANCH)")
    r.add_argument("--component-path", default="", help="Tag prefix of the component (env: COMPONENT_PATH)")
    r.add_argument("--repo-dir", default="", help="Git checkout to list tags from")
    r.add_argument("--log-level", default="", help="Logging level")
    r.add_argument("--json", action="store_true", help="Print outputs as JSON")
    r.set_defaults(func=cmd_resolve_rc)
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return args.func(args)
    except AttestError as ex:
        logger.debug("command failed", exc_info=True)
        print(f"ERROR: {ex}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
